"""
Solana signer protocol — the secrets boundary.

The adapter builds the message; the signer returns the serialized,
signed transaction and its first signature. The keypair never leaves
the signer.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction


@dataclass(frozen=True)
class SignedSolanaTransaction:
    """Result of signing.

    Attributes:
        raw_base64: Wire transaction, base64, for ``sendTransaction``.
        signature: First signature (the transaction id), base58.
        key_id: Public key of the signer, base58.
    """

    raw_base64: str
    signature: str
    key_id: str


@runtime_checkable
class SolanaSigner(Protocol):
    """Interface for Solana transaction signing."""

    @property
    def pubkey(self) -> Pubkey:
        ...

    @property
    def key_id(self) -> str:
        ...

    def sign(self, message: Message, recent_blockhash: Hash) -> SignedSolanaTransaction:
        ...


class KeypairSigner:
    """Signs with an in-process keypair."""

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_base58(cls, secret: str) -> KeypairSigner:
        """Load a base58-encoded 64-byte keypair."""
        return cls(Keypair.from_base58_string(secret))

    def __repr__(self) -> str:
        return f"KeypairSigner(pubkey={self._keypair.pubkey()})"

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    @property
    def key_id(self) -> str:
        return str(self._keypair.pubkey())

    def sign(self, message: Message, recent_blockhash: Hash) -> SignedSolanaTransaction:
        tx = Transaction([self._keypair], message, recent_blockhash)
        return SignedSolanaTransaction(
            raw_base64=base64.b64encode(bytes(tx)).decode("ascii"),
            signature=str(tx.signatures[0]),
            key_id=self.key_id,
        )
