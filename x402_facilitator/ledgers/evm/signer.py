"""
EVM signer protocol — the secrets boundary.

The adapter hands the signer an unsigned transaction dict and gets back
raw signed bytes plus the hash. It never sees the private key.

Concrete implementations:
    - LocalAccountSigner (eth-account LocalAccount)
    - FakeSigner (tests)

``key_id`` is the signer's address: public, safe for logs, and the key
the settlement lock is taken on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from eth_account import Account


@dataclass(frozen=True)
class SignedTransaction:
    """Result of signing a transaction.

    Attributes:
        raw_hex: ``0x``-prefixed signed transaction, ready for
            ``eth_sendRawTransaction``.
        tx_hash: ``0x``-prefixed transaction hash.
        key_id: Address of the signing key.
    """

    raw_hex: str
    tx_hash: str
    key_id: str


@runtime_checkable
class EvmSigner(Protocol):
    """Interface for EVM transaction signing."""

    @property
    def address(self) -> str:
        """Checksummed address of the signing key."""
        ...

    @property
    def key_id(self) -> str:
        """Public identifier of the signing key (safe for logging)."""
        ...

    def sign(self, tx: dict[str, Any]) -> SignedTransaction:
        """Sign a fully populated transaction dict.

        Raises:
            ValueError: If the transaction dict is malformed.
        """
        ...


def _hex(value: bytes) -> str:
    text = value.hex()
    return text if text.startswith("0x") else "0x" + text


class LocalAccountSigner:
    """Signs with an in-process private key.

    Args:
        private_key: Hex private key, with or without ``0x``.
    """

    def __init__(self, private_key: str) -> None:
        self._account = Account.from_key(private_key)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self._account.address})"

    @property
    def address(self) -> str:
        return str(self._account.address)

    @property
    def key_id(self) -> str:
        return str(self._account.address)

    def sign(self, tx: dict[str, Any]) -> SignedTransaction:
        try:
            signed = self._account.sign_transaction(tx)
        except (TypeError, KeyError) as exc:
            raise ValueError(f"cannot sign transaction: {exc}") from exc
        return SignedTransaction(
            raw_hex=_hex(signed.raw_transaction),
            tx_hash=_hex(signed.hash),
            key_id=self.key_id,
        )
