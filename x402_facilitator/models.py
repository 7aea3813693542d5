"""
Value objects for the facilitator.

Everything here is a frozen dataclass: proofs are immutable once decoded,
results have no identity beyond the request that produced them.

Wire names follow the x402 protocol (``x402Version``, ``network``,
``from``/``to``, ``payTo``, ``maxAmountRequired``). Python attribute names
follow the domain vocabulary (``protocol_version``, ``ledger``,
``payer``/``payee``, ``min_amount``). Only ``to_dict``/``from_dict``
know about the wire names.

Amounts are ``int`` in minor units in Python and decimal strings on the
wire. Floats are never accepted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from x402_facilitator.errors import SchemaViolation
from x402_facilitator.schema import validate_requirement

EXACT_SCHEME = "exact"
PROTOCOL_VERSION = 1
UNKNOWN = "unknown"

_DECIMAL_RE = re.compile(r"^(0|[1-9][0-9]*)$")


def parse_amount(value: object, field_name: str) -> int:
    """Parse a wire amount (decimal string) into minor units.

    Raises:
        SchemaViolation: If the value is not a non-negative decimal string.
    """
    if isinstance(value, bool) or not isinstance(value, str) or not _DECIMAL_RE.match(value):
        raise SchemaViolation(
            f"{field_name} must be a decimal string of minor units, got: {value!r}"
        )
    return int(value)


def is_hex_identity(identity: str) -> bool:
    """True for ``0x``-prefixed hex identities (EVM addresses)."""
    return identity[:2].lower() == "0x"


def same_identity(a: str, b: str) -> bool:
    """Compare two ledger identities.

    Hex identities compare case-insensitively (EIP-55 checksum casing is
    presentation only). Everything else, base58 included, is case-sensitive.
    """
    if is_hex_identity(a) and is_hex_identity(b):
        return a.lower() == b.lower()
    return a == b


# =========================================================================
# Proof
# =========================================================================


@dataclass(frozen=True)
class PaymentPayload:
    """The signed claim: payer authorizes ``amount`` to payee by ``deadline``.

    Attributes:
        payer: Identity of the account the funds come from.
        payee: Identity of the account the funds go to.
        amount: Amount in minor units.
        nonce: Payer-chosen uniqueness value. Type (str or int) is preserved.
        deadline: Unix timestamp in seconds, in the ledger's clock domain.
        signature: Payer's signature over the payment (hex or base58).
        ledger_specific_auth: Fully signed raw transfer transaction, for
            ledgers whose native asset has no delegation primitive.
    """

    payer: str
    payee: str
    amount: int
    nonce: str | int
    deadline: int
    signature: str
    ledger_specific_auth: str | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "from": self.payer,
            "to": self.payee,
            "amount": str(self.amount),
            "nonce": self.nonce,
            "deadline": self.deadline,
            "signature": self.signature,
        }
        if self.ledger_specific_auth is not None:
            result["signedTransaction"] = self.ledger_specific_auth
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentPayload:
        return cls(
            payer=data["from"],
            payee=data["to"],
            amount=parse_amount(data["amount"], "payload.amount"),
            nonce=data["nonce"],
            deadline=data["deadline"],
            signature=data["signature"],
            ledger_specific_auth=data.get("signedTransaction"),
        )


@dataclass(frozen=True)
class PaymentProof:
    """A decoded payment header."""

    protocol_version: int
    scheme: str
    ledger: str
    payload: PaymentPayload

    def to_dict(self) -> dict[str, object]:
        return {
            "x402Version": self.protocol_version,
            "scheme": self.scheme,
            "network": self.ledger,
            "payload": self.payload.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentProof:
        return cls(
            protocol_version=data["x402Version"],
            scheme=data["scheme"],
            ledger=data["network"],
            payload=PaymentPayload.from_dict(data["payload"]),
        )


# =========================================================================
# Requirement
# =========================================================================


@dataclass(frozen=True)
class PaymentRequirement:
    """What the merchant asks for, per ledger.

    Produced by the resource server and trusted as input.

    Attributes:
        scheme: Authorization scheme (only "exact").
        ledger: Ledger name the merchant accepts payment on.
        min_amount: Minimum acceptable amount in minor units.
        payee: Merchant identity that must receive the funds.
        asset: Token contract / mint, or the zero address for native assets.
        facilitator_identity: Facilitator identity the payer bound the
            signature to. Falls back to the configured identity when absent.
        timeout_seconds: Merchant's maximum settlement timeout.
    """

    scheme: str
    ledger: str
    min_amount: int
    payee: str
    asset: str
    facilitator_identity: str | None = None
    timeout_seconds: int = 60

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "scheme": self.scheme,
            "network": self.ledger,
            "maxAmountRequired": str(self.min_amount),
            "payTo": self.payee,
            "asset": self.asset,
            "maxTimeoutSeconds": self.timeout_seconds,
        }
        if self.facilitator_identity is not None:
            result["facilitator"] = self.facilitator_identity
        return result

    @classmethod
    def from_dict(cls, data: Any) -> PaymentRequirement:
        """Parse a wire requirement.

        Raises:
            SchemaViolation: If required fields are absent or mistyped.
        """
        validate_requirement(data)
        return cls(
            scheme=data["scheme"],
            ledger=data["network"],
            min_amount=int(data["maxAmountRequired"]),
            payee=data["payTo"],
            asset=data.get("asset") or "",
            facilitator_identity=data.get("facilitator"),
            timeout_seconds=data.get("maxTimeoutSeconds", 60),
        )


# =========================================================================
# Results
# =========================================================================


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of ``verify``.

    ``internal`` marks decode/internal failures (5xx equivalent). It is
    not part of the wire shape.
    """

    is_valid: bool
    payer: str
    invalid_reason: str | None = None
    internal: bool = field(default=False, compare=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "isValid": self.is_valid,
            "payer": self.payer,
            "invalidReason": self.invalid_reason,
        }


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of ``settle``.

    ``transaction_ref`` is the ledger's transaction hash/signature, the
    simulated sentinel reference, or "" when nothing was submitted.
    """

    success: bool
    payer: str
    transaction_ref: str
    ledger: str
    error_reason: str | None = None
    internal: bool = field(default=False, compare=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "payer": self.payer,
            "transaction": self.transaction_ref,
            "network": self.ledger,
            "errorReason": self.error_reason,
        }


@dataclass(frozen=True)
class SupportedKind:
    """One (scheme, ledger) pair the facilitator will accept."""

    scheme: str
    ledger: str
    protocol_version: int = PROTOCOL_VERSION

    def to_dict(self) -> dict[str, object]:
        return {
            "x402Version": self.protocol_version,
            "scheme": self.scheme,
            "network": self.ledger,
        }
