"""
Raw-message Ed25519 payment authorization.

The payer's wallet signs the UTF-8 bytes of::

    from:{payer}|to:{payee}|amount:{amount}|nonce:{nonce}|deadline:{deadline}

with the key behind ``payer`` (a base58 public key). The signature is
base58 on the wire.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from solders.pubkey import Pubkey
from solders.signature import Signature

from x402_facilitator.ledgers.base import (
    Authenticated,
    AuthOutcome,
    MalformedAuth,
    SignatureInvalid,
)
from x402_facilitator.models import PaymentPayload


def payment_message(payload: PaymentPayload) -> bytes:
    """The exact bytes the payer signed."""
    return (
        f"from:{payload.payer}|to:{payload.payee}|amount:{payload.amount}"
        f"|nonce:{payload.nonce}|deadline:{payload.deadline}"
    ).encode("utf-8")


def verify_payment_message(payload: PaymentPayload) -> AuthOutcome:
    """Verify ``payload.signature`` over ``payment_message`` against ``payer``."""
    try:
        public_key = bytes(Pubkey.from_string(payload.payer))
    except Exception:  # solders parse errors are not a common base type
        return MalformedAuth("payer is not a base58 public key")
    try:
        signature = bytes(Signature.from_string(payload.signature))
    except Exception:
        return MalformedAuth("signature is not a base58 Ed25519 signature")

    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(
            signature, payment_message(payload)
        )
    except InvalidSignature:
        return SignatureInvalid()
    except ValueError as exc:
        return MalformedAuth(str(exc))
    return Authenticated(payer=payload.payer)
