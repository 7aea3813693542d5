"""
Proof codec — the wire envelope.

A payment header is base64(UTF-8 JSON). ``decode`` turns it into a
PaymentProof or raises a DecodeError; it never makes business decisions
(an expired or underpaid proof decodes fine). ``encode`` is the exact
inverse, used by tests and by clients built on this package.

Schema validation lives in ``schema``. Amounts are decimal strings on
the wire so values above 2**53 survive JSON.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from x402_facilitator.errors import MalformedEnvelope
from x402_facilitator.models import UNKNOWN, PaymentProof
from x402_facilitator.schema import validate_proof


def _load_json(header: str) -> Any:
    """base64 → bytes → UTF-8 → JSON, raising MalformedEnvelope on any step."""
    if not isinstance(header, str) or not header:
        raise MalformedEnvelope("payment header must be a non-empty string")
    try:
        raw = base64.b64decode(header, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedEnvelope(f"payment header is not valid base64: {exc}") from exc
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedEnvelope("payment header is not UTF-8") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedEnvelope(f"payment header is not JSON: {exc.msg}") from exc


def decode(header: str) -> PaymentProof:
    """Decode a base64 payment header into a PaymentProof.

    Raises:
        MalformedEnvelope: Invalid base64, UTF-8 or JSON.
        SchemaViolation: Required fields absent or of the wrong type.
    """
    data = _load_json(header)
    validate_proof(data)
    return PaymentProof.from_dict(data)


def encode(proof: PaymentProof) -> str:
    """Encode a PaymentProof as a base64 payment header.

    Keys are sorted and separators compact, so equal proofs encode to
    equal headers.
    """
    text = json.dumps(
        proof.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def peek(header: object) -> tuple[str, str]:
    """Best-effort (payer, ledger) from a header that may not decode.

    Never raises. Missing or unreadable values become "unknown".
    """
    try:
        data = _load_json(header)  # type: ignore[arg-type]
    except MalformedEnvelope:
        return UNKNOWN, UNKNOWN
    if not isinstance(data, dict):
        return UNKNOWN, UNKNOWN
    payload = data.get("payload")
    payer = payload.get("from") if isinstance(payload, dict) else None
    ledger = data.get("network")
    return (
        payer if isinstance(payer, str) and payer else UNKNOWN,
        ledger if isinstance(ledger, str) and ledger else UNKNOWN,
    )
