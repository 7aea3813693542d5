"""
EIP-712 payment authorization.

The payer signs a ``Payment`` struct whose domain is bound to the
facilitator (``verifyingContract`` = facilitator address). Binding the
domain to the payee would let a proof authorize payments to whoever
the payee field names, so the payee never appears in the domain.

Pure functions. No I/O.
"""

from __future__ import annotations

from typing import Any

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import is_address, to_checksum_address

from x402_facilitator.ledgers.base import (
    Authenticated,
    AuthOutcome,
    MalformedAuth,
    SignatureInvalid,
)
from x402_facilitator.models import PaymentPayload

DOMAIN_NAME = "SBC x402 Facilitator"
DOMAIN_VERSION = "1"

PAYMENT_TYPES: dict[str, list[dict[str, str]]] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Payment": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

_UINT256_MAX = 2**256 - 1


def _uint256(value: str | int, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an unsigned integer")
    if isinstance(value, int):
        number = value
    else:
        text = value.strip()
        try:
            number = int(text, 16) if text[:2].lower() == "0x" else int(text, 10)
        except ValueError:
            raise ValueError(f"{name} is not an unsigned integer: {value!r}") from None
    if not 0 <= number <= _UINT256_MAX:
        raise ValueError(f"{name} is out of uint256 range")
    return number


def _address(value: str, name: str) -> str:
    if not is_address(value):
        raise ValueError(f"{name} is not an EVM address: {value!r}")
    return to_checksum_address(value)


def build_typed_data(
    payload: PaymentPayload, chain_id: int, facilitator: str
) -> dict[str, Any]:
    """Build the full EIP-712 message for a payment.

    Raises:
        ValueError: If an address or integer field cannot be represented.
    """
    return {
        "types": PAYMENT_TYPES,
        "primaryType": "Payment",
        "domain": {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": _address(facilitator, "facilitator"),
        },
        "message": {
            "from": _address(payload.payer, "from"),
            "to": _address(payload.payee, "to"),
            "amount": _uint256(payload.amount, "amount"),
            "nonce": _uint256(payload.nonce, "nonce"),
            "deadline": _uint256(payload.deadline, "deadline"),
        },
    }


def payment_signable(
    payload: PaymentPayload, chain_id: int, facilitator: str
) -> SignableMessage:
    """The signable message a wallet produces for this payment."""
    return encode_typed_data(full_message=build_typed_data(payload, chain_id, facilitator))


def verify_typed_payment(
    payload: PaymentPayload, chain_id: int, facilitator: str
) -> AuthOutcome:
    """Check that ``payload.signature`` over the typed payment recovers ``payer``.

    Returns:
        Authenticated on a match, SignatureInvalid when the signature
        recovers someone else, MalformedAuth when the payload or the
        signature cannot be parsed.
    """
    try:
        signable = payment_signable(payload, chain_id, facilitator)
    except ValueError as exc:
        return MalformedAuth(str(exc))

    try:
        recovered = Account.recover_message(signable, signature=payload.signature)
    except Exception as exc:  # eth-keys raises several unrelated types for bad bytes
        return MalformedAuth(f"unrecoverable signature: {type(exc).__name__}")

    if recovered.lower() != payload.payer.lower():
        return SignatureInvalid(f"signature recovers {recovered}")
    return Authenticated(payer=payload.payer)
