"""
Tests for the payment header codec.

Test plan:
- Round trip: decode(encode(p)) == p, including amounts above 2**64,
  string and integer nonces, and the optional signed transaction
- Envelope errors: bad base64, bad UTF-8, bad JSON → MalformedEnvelope
- Schema errors: missing fields, wrong types, float or signed amounts
  → SchemaViolation naming the field
- Integral floats and booleans are not integers (nonce, deadline, version)
- Requirements: schema-checked, null asset means "any", optional fields
  default
- Encoding is canonical (sorted keys, no whitespace)
- peek() never raises and falls back to "unknown"
"""

import base64
import json

import pytest

from x402_facilitator.codec import decode, encode, peek
from x402_facilitator.errors import DecodeError, MalformedEnvelope, SchemaViolation
from x402_facilitator.config import BASE_SBC_TOKEN
from x402_facilitator.models import UNKNOWN, PaymentPayload, PaymentRequirement

from payment_helpers import AMOUNT, FACILITATOR, MERCHANT, PAYER, make_proof, presigned_payload


def _b64(obj: object) -> str:
    return base64.b64encode(json.dumps(obj).encode("utf-8")).decode("ascii")


def _wire(**payload_overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "from": PAYER,
        "to": MERCHANT,
        "amount": str(AMOUNT),
        "nonce": "1",
        "deadline": 1_700_000_300,
        "signature": "0xabcd",
    }
    payload.update(payload_overrides)
    return {"x402Version": 1, "scheme": "exact", "network": "base", "payload": payload}


def _payload(**overrides: object) -> PaymentPayload:
    fields: dict[str, object] = {
        "payer": PAYER,
        "payee": MERCHANT,
        "amount": AMOUNT,
        "nonce": "1",
        "deadline": 1_700_000_300,
        "signature": "0xabcd",
    }
    fields.update(overrides)
    return PaymentPayload(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    def test_simple_proof(self) -> None:
        proof = make_proof(_payload())
        assert decode(encode(proof)) == proof

    def test_amount_above_uint64(self) -> None:
        proof = make_proof(_payload(amount=2**200 + 7))
        decoded = decode(encode(proof))
        assert decoded.payload.amount == 2**200 + 7

    def test_amount_stays_a_string_on_the_wire(self) -> None:
        header = encode(make_proof(_payload(amount=2**70)))
        data = json.loads(base64.b64decode(header))
        assert data["payload"]["amount"] == str(2**70)

    def test_integer_nonce_keeps_its_type(self) -> None:
        decoded = decode(encode(make_proof(_payload(nonce=42))))
        assert decoded.payload.nonce == 42
        assert isinstance(decoded.payload.nonce, int)

    def test_signed_transaction_survives(self) -> None:
        proof = make_proof(presigned_payload(), ledger="radius-testnet")
        decoded = decode(encode(proof))
        assert decoded.payload.ledger_specific_auth == proof.payload.ledger_specific_auth

    def test_absent_signed_transaction_is_not_emitted(self) -> None:
        data = json.loads(base64.b64decode(encode(make_proof(_payload()))))
        assert "signedTransaction" not in data["payload"]

    def test_encoding_is_canonical(self) -> None:
        raw = base64.b64decode(encode(make_proof(_payload()))).decode("utf-8")
        assert " " not in raw
        assert raw.index('"network"') < raw.index('"payload"') < raw.index('"scheme"')


# ---------------------------------------------------------------------------
# Envelope errors
# ---------------------------------------------------------------------------


class TestMalformedEnvelope:
    def test_not_base64(self) -> None:
        with pytest.raises(MalformedEnvelope):
            decode("not base64 at all!!")

    def test_not_utf8(self) -> None:
        with pytest.raises(MalformedEnvelope):
            decode(base64.b64encode(b"\xff\xfe\xfa").decode("ascii"))

    def test_not_json(self) -> None:
        with pytest.raises(MalformedEnvelope):
            decode(base64.b64encode(b"{not json").decode("ascii"))

    def test_empty_header(self) -> None:
        with pytest.raises(MalformedEnvelope):
            decode("")

    def test_is_a_decode_error(self) -> None:
        with pytest.raises(DecodeError):
            decode("%%%")


# ---------------------------------------------------------------------------
# Schema errors
# ---------------------------------------------------------------------------


class TestSchemaViolation:
    def test_missing_payload(self) -> None:
        data = _wire()
        del data["payload"]
        with pytest.raises(SchemaViolation, match="payload"):
            decode(_b64(data))

    def test_missing_signature(self) -> None:
        data = _wire()
        del data["payload"]["signature"]  # type: ignore[attr-defined]
        with pytest.raises(SchemaViolation, match="signature"):
            decode(_b64(data))

    def test_numeric_amount_rejected(self) -> None:
        with pytest.raises(SchemaViolation, match="amount"):
            decode(_b64(_wire(amount=1.5)))

    def test_negative_amount_rejected(self) -> None:
        with pytest.raises(SchemaViolation, match="amount"):
            decode(_b64(_wire(amount="-5")))

    def test_leading_zero_amount_rejected(self) -> None:
        with pytest.raises(SchemaViolation, match="amount"):
            decode(_b64(_wire(amount="007")))

    def test_string_deadline_rejected(self) -> None:
        with pytest.raises(SchemaViolation, match="deadline"):
            decode(_b64(_wire(deadline="1700000300")))

    def test_top_level_array_rejected(self) -> None:
        with pytest.raises(SchemaViolation):
            decode(_b64([1, 2, 3]))

    @pytest.mark.parametrize("nonce", [5.0, 1.5, True, None])
    def test_nonce_must_be_string_or_integer(self, nonce: object) -> None:
        with pytest.raises(SchemaViolation, match="nonce"):
            decode(_b64(_wire(nonce=nonce)))

    def test_integral_float_deadline_rejected(self) -> None:
        with pytest.raises(SchemaViolation, match="deadline"):
            decode(_b64(_wire(deadline=1_700_000_300.0)))

    @pytest.mark.parametrize("version", [1.0, True])
    def test_version_must_be_integer(self, version: object) -> None:
        data = _wire()
        data["x402Version"] = version
        with pytest.raises(SchemaViolation, match="x402Version"):
            decode(_b64(data))


# ---------------------------------------------------------------------------
# Payment requirements
# ---------------------------------------------------------------------------


def _requirement_wire(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "scheme": "exact",
        "network": "base",
        "maxAmountRequired": str(AMOUNT),
        "payTo": MERCHANT,
        "asset": BASE_SBC_TOKEN,
        "maxTimeoutSeconds": 30,
    }
    data.update(overrides)
    return data


class TestRequirementParsing:
    def test_fields(self) -> None:
        requirement = PaymentRequirement.from_dict(_requirement_wire(facilitator=FACILITATOR))
        assert requirement.min_amount == AMOUNT
        assert requirement.payee == MERCHANT
        assert requirement.asset == BASE_SBC_TOKEN
        assert requirement.facilitator_identity == FACILITATOR
        assert requirement.timeout_seconds == 30

    def test_null_asset_means_unspecified(self) -> None:
        assert PaymentRequirement.from_dict(_requirement_wire(asset=None)).asset == ""

    def test_absent_optional_fields(self) -> None:
        data = _requirement_wire()
        del data["asset"]
        del data["maxTimeoutSeconds"]
        requirement = PaymentRequirement.from_dict(data)
        assert requirement.asset == ""
        assert requirement.timeout_seconds == 60
        assert requirement.facilitator_identity is None

    def test_round_trip(self) -> None:
        requirement = PaymentRequirement.from_dict(_requirement_wire())
        assert PaymentRequirement.from_dict(requirement.to_dict()) == requirement

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"maxAmountRequired": "-5"}, "maxAmountRequired"),
            ({"maxAmountRequired": 50}, "maxAmountRequired"),
            ({"payTo": 7}, "payTo"),
            ({"maxTimeoutSeconds": 30.0}, "maxTimeoutSeconds"),
            ({"facilitator": 1}, "facilitator"),
        ],
    )
    def test_mistyped_field(self, overrides: dict, field: str) -> None:
        with pytest.raises(SchemaViolation, match=field):
            PaymentRequirement.from_dict(_requirement_wire(**overrides))

    def test_missing_field(self) -> None:
        data = _requirement_wire()
        del data["payTo"]
        with pytest.raises(SchemaViolation, match="payTo"):
            PaymentRequirement.from_dict(data)

    def test_not_an_object(self) -> None:
        with pytest.raises(SchemaViolation, match="paymentRequirements"):
            PaymentRequirement.from_dict(None)


# ---------------------------------------------------------------------------
# peek
# ---------------------------------------------------------------------------


class TestPeek:
    def test_recovers_payer_and_ledger(self) -> None:
        assert peek(_b64(_wire())) == (PAYER, "base")

    def test_recovers_from_schema_invalid_header(self) -> None:
        assert peek(_b64(_wire(amount=1.5))) == (PAYER, "base")

    def test_unknown_on_garbage(self) -> None:
        assert peek("%%%") == (UNKNOWN, UNKNOWN)

    def test_unknown_on_non_string(self) -> None:
        assert peek(None) == (UNKNOWN, UNKNOWN)

    def test_unknown_payer_when_payload_missing(self) -> None:
        assert peek(_b64({"network": "base"})) == (UNKNOWN, "base")
