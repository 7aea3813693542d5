"""
Pre-signed raw transaction parsing.

Ledgers whose native asset has no delegation primitive cannot let the
facilitator move funds. Instead the payer signs the full transfer and
the facilitator only rebroadcasts it. The transaction's own signature
is the authorization, so this module checks that the signed transaction
pays exactly what the payload claims.

Supported envelopes:
    - legacy (EIP-155 replay-protected only)
    - 0x01 (EIP-2930)
    - 0x02 (EIP-1559)
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_account import Account
from eth_utils import keccak, to_checksum_address
import rlp
from rlp.exceptions import RLPException

from x402_facilitator.ledgers.base import (
    Authenticated,
    AuthOutcome,
    MalformedAuth,
    SignatureInvalid,
)
from x402_facilitator.models import PaymentPayload, same_identity

# (field count, index of chain_id, index of to, index of value)
_TYPED_LAYOUT: dict[int, tuple[int, int, int, int]] = {
    0x01: (11, 0, 4, 5),
    0x02: (12, 0, 5, 6),
}
_LEGACY_FIELDS = 9


@dataclass(frozen=True)
class RawTransaction:
    """The fields of a signed transaction the facilitator cares about.

    Attributes:
        tx_type: 0 for legacy, otherwise the EIP-2718 type byte.
        chain_id: Chain id the signature commits to.
        to: Checksummed destination address.
        value: Native value in wei.
        sender: Checksummed address recovered from the signature.
        tx_hash: ``0x``-prefixed keccak hash of the raw bytes.
        raw_hex: The raw transaction, ``0x``-prefixed.
    """

    tx_type: int
    chain_id: int
    to: str
    value: int
    sender: str
    tx_hash: str
    raw_hex: str


def _decode_hex(raw_hex: str) -> bytes:
    text = raw_hex[2:] if raw_hex[:2].lower() == "0x" else raw_hex
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError("signed transaction is not hex") from None


def _as_int(item: object) -> int:
    if not isinstance(item, bytes):
        raise ValueError("expected an RLP string, got a list")
    return int.from_bytes(item, "big")


def _as_address(item: object) -> str:
    if not isinstance(item, bytes):
        raise ValueError("expected an RLP string, got a list")
    if len(item) == 0:
        raise ValueError("contract creation is not a payment")
    if len(item) != 20:
        raise ValueError(f"destination is {len(item)} bytes, expected 20")
    return to_checksum_address(item)


def parse_raw_transaction(raw_hex: str) -> RawTransaction:
    """Parse and recover a signed raw transaction.

    Raises:
        ValueError: If the bytes are not a supported signed transaction.
    """
    raw = _decode_hex(raw_hex)
    if not raw:
        raise ValueError("signed transaction is empty")

    try:
        if raw[0] in _TYPED_LAYOUT:
            tx_type = raw[0]
            count, chain_idx, to_idx, value_idx = _TYPED_LAYOUT[tx_type]
            fields = rlp.decode(raw[1:])
            if not isinstance(fields, list) or len(fields) != count:
                raise ValueError(f"type {tx_type:#04x} transaction has wrong field count")
            chain_id = _as_int(fields[chain_idx])
            to = _as_address(fields[to_idx])
            value = _as_int(fields[value_idx])
        elif raw[0] >= 0xC0:
            tx_type = 0
            fields = rlp.decode(raw)
            if not isinstance(fields, list) or len(fields) != _LEGACY_FIELDS:
                raise ValueError("legacy transaction has wrong field count")
            to = _as_address(fields[3])
            value = _as_int(fields[4])
            v = _as_int(fields[6])
            if v < 35:
                raise ValueError("legacy transaction is not replay-protected (no chain id)")
            chain_id = (v - 35) // 2
        else:
            raise ValueError(f"unsupported transaction type {raw[0]:#04x}")
    except RLPException as exc:
        raise ValueError(f"signed transaction is not valid RLP: {exc}") from None

    prefixed = "0x" + raw.hex()
    try:
        sender = Account.recover_transaction(prefixed)
    except Exception as exc:  # eth-account surfaces several types for bad signatures
        raise ValueError(f"cannot recover sender: {type(exc).__name__}") from None

    return RawTransaction(
        tx_type=tx_type,
        chain_id=chain_id,
        to=to,
        value=value,
        sender=to_checksum_address(sender),
        tx_hash="0x" + keccak(raw).hex(),
        raw_hex=prefixed,
    )


def verify_presigned(payload: PaymentPayload, chain_id: int) -> AuthOutcome:
    """Check that the payload's signed transaction pays what it claims.

    The signed transaction must send ``amount`` to ``payee`` on
    ``chain_id`` from ``payer``. The payload's plain ``signature`` is
    not consulted.
    """
    if not payload.ledger_specific_auth:
        return MalformedAuth("signed transaction is required on this ledger")

    try:
        tx = parse_raw_transaction(payload.ledger_specific_auth)
    except ValueError as exc:
        return MalformedAuth(str(exc))

    if tx.chain_id != chain_id:
        return SignatureInvalid(f"transaction chain id {tx.chain_id} != {chain_id}")
    if not same_identity(tx.to, payload.payee):
        return SignatureInvalid("transaction destination does not match payee")
    if tx.value != payload.amount:
        return SignatureInvalid("transaction value does not match amount")
    if not same_identity(tx.sender, payload.payer):
        return SignatureInvalid("transaction is not signed by payer")
    return Authenticated(payer=payload.payer)
