"""
Ledger adapter protocol — one implementation per ledger family.

The Router and the SettlementExecutor only ever see this interface.
Each family decides how it represents accounts, signatures, balances
and transfers:

    - ``authenticate()`` — pure. Checks the payer's authorization.
    - ``balance_of()`` — impure. Read-only solvency query.
    - ``allowance_of()`` — impure. Standing delegation to the facilitator,
      or None for families without a delegation primitive.
    - ``prepare()`` — impure reads, no writes. Builds and signs the
      transfer (or parses the payer's pre-signed one). The transaction
      reference is known before anything is broadcast.
    - ``broadcast()`` — impure. Hands the prepared bytes to the ledger.
    - ``get_status()`` — impure. Polls a broadcast transaction once.

A node that answers "no" comes back as a result object. Transport
failures (connection, timeout) propagate as exceptions so the executor
can tell "the node refused" from "we never heard back".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union, runtime_checkable

from x402_facilitator.config import LedgerConfig
from x402_facilitator.models import PaymentPayload, PaymentRequirement


# =========================================================================
# Authentication outcomes
# =========================================================================


@dataclass(frozen=True)
class Authenticated:
    """The payer authored exactly this payment."""

    payer: str


@dataclass(frozen=True)
class SignatureInvalid:
    """The authorization parsed but does not authenticate the payment."""

    detail: str | None = None


@dataclass(frozen=True)
class MalformedAuth:
    """The authorization could not be parsed at all."""

    detail: str | None = None


AuthOutcome = Union[Authenticated, SignatureInvalid, MalformedAuth]


# =========================================================================
# Network results
# =========================================================================


@dataclass(frozen=True)
class PreparedTransfer:
    """A signed transfer ready to broadcast.

    Attributes:
        raw: Encoded signed transaction (``0x`` hex for EVM, base64 for
            Solana).
        tx_ref: Transaction hash / first signature, computed locally.
    """

    raw: str
    tx_ref: str


@dataclass(frozen=True)
class SubmitResult:
    """Result of broadcasting a prepared transfer.

    Attributes:
        accepted: Whether the node accepted the transaction for inclusion.
            True does NOT mean confirmed. False means it cannot land.
        tx_ref: Transaction reference reported by the node (or the
            locally computed one).
        detail: The node's own error text when not accepted.
    """

    accepted: bool
    tx_ref: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class TxStatus:
    """Result of polling a broadcast transaction once.

    Attributes:
        found: Whether the ledger knows the transaction yet.
        final: Whether the transaction reached the required commitment.
        succeeded: Execution result once final (False = reverted/failed).
        detail: Ledger's failure text, if any.
    """

    found: bool
    final: bool = False
    succeeded: bool | None = None
    detail: str | None = None


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class LedgerAdapter(Protocol):
    """Interface every ledger family implements."""

    @property
    def config(self) -> LedgerConfig:
        """The ledger this adapter serves."""
        ...

    @property
    def key_id(self) -> str:
        """Public identifier of the facilitator signing key (safe to log)."""
        ...

    def authenticate(
        self, payload: PaymentPayload, requirement: PaymentRequirement
    ) -> AuthOutcome:
        """Check that the payer authorized exactly this payment. No I/O."""
        ...

    async def balance_of(self, identity: str) -> int:
        """Current balance of ``identity`` in the ledger's settled asset."""
        ...

    async def allowance_of(self, owner: str) -> int | None:
        """Amount the facilitator may move on ``owner``'s behalf.

        Returns None for families without a delegation primitive.
        """
        ...

    async def prepare(self, payload: PaymentPayload) -> PreparedTransfer:
        """Build and sign (or parse) the transfer. Writes nothing."""
        ...

    async def broadcast(self, prepared: PreparedTransfer) -> SubmitResult:
        """Hand the prepared transfer to the ledger."""
        ...

    async def get_status(self, tx_ref: str) -> TxStatus:
        """Poll a broadcast transaction once."""
        ...
