"""
Settlement executor.

Moves funds for an already-verified proof through its ledger adapter,
or, in simulated mode, returns a sentinel reference without any I/O.

Real settlement runs in phases, and the phase a failure happens in
decides what the caller is told:

    1. allowance check, prepare   nothing sent      → definite failure
    2. broadcast                  node refused      → definite failure
                                  transport failed  → outcome unknown
    3. confirmation polling       reverted          → definite failure
                                  deadline reached  → outcome unknown

Phases 1 and 2 hold a per-``(ledger, key_id)`` lock so one signing key
never has two transactions in flight while picking its nonce. Phase 3
runs outside the lock. Verification never takes the lock.

The whole settlement runs under one deadline: the configured settle
timeout, tightened by the merchant's ``maxTimeoutSeconds``.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from x402_facilitator.config import FacilitatorConfig, SettlementMode
from x402_facilitator.errors import (
    InvalidReason,
    LedgerRpcError,
    SettlementReason,
    classify_broadcast_error,
    classify_connection_error,
    classify_rpc_error,
    classify_timeout,
)
from x402_facilitator.ledgers.base import LedgerAdapter, PreparedTransfer
from x402_facilitator.models import PaymentProof, PaymentRequirement, SettlementResult
from x402_facilitator.replay import ConsumedProofStore, ProofKey
from x402_facilitator.reporter import settlement_failed, settlement_ok

logger = logging.getLogger(__name__)

SIMULATED_PREFIX = "simulated:"


def simulated_reference() -> str:
    """A reference that can never be mistaken for a ledger transaction."""
    return SIMULATED_PREFIX + secrets.token_hex(32)


def is_simulated_reference(ref: str) -> bool:
    return ref.startswith(SIMULATED_PREFIX)


@dataclass
class _Attempt:
    """Mutable progress of one real settlement, read after a timeout."""

    tx_ref: str = ""
    broadcast_started: bool = False


class SettlementExecutor:
    """Executes settlements, one signing key at a time.

    Args:
        config: Facilitator configuration (mode, timeouts).
        consumed_proofs: Optional replay store. When set, each
            ``(ledger, payer, nonce)`` settles at most once.
        sleep: Coroutine used between confirmation polls.
    """

    def __init__(
        self,
        config: FacilitatorConfig,
        consumed_proofs: ConsumedProofStore | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._consumed = consumed_proofs
        self._sleep = sleep
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    @property
    def mode(self) -> SettlementMode:
        return self._config.settlement_mode

    def lock_for(self, ledger: str, key_id: str) -> asyncio.Lock:
        """The single-writer lock for one signing key on one ledger."""
        key = (ledger, key_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _deadline(self, requirement: PaymentRequirement) -> float:
        timeout = self._config.settle_timeout_seconds
        if requirement.timeout_seconds > 0:
            timeout = min(timeout, float(requirement.timeout_seconds))
        return timeout

    async def settle(
        self,
        proof: PaymentProof,
        requirement: PaymentRequirement,
        adapter: LedgerAdapter,
    ) -> SettlementResult:
        """Settle a verified proof. Never raises for ledger outcomes."""
        payload = proof.payload
        ledger = adapter.config.name
        key = ProofKey.of(ledger, payload)

        if self._consumed is not None and not self._consumed.claim(key):
            logger.warning("replayed proof on %s from %s", ledger, payload.payer)
            return settlement_failed(payload.payer, ledger, InvalidReason.ALREADY_SETTLED)

        if self.mode is SettlementMode.SIMULATED:
            ref = simulated_reference()
            logger.info("simulated settlement on %s ref=%s", ledger, ref)
            return settlement_ok(payload.payer, ref, ledger)

        attempt = _Attempt()
        try:
            async with asyncio.timeout(self._deadline(requirement)):
                result = await self._submit(proof, adapter, attempt)
                if result is None:
                    result = await self._confirm(proof, adapter, attempt.tx_ref)
        except TimeoutError:
            if attempt.broadcast_started:
                logger.warning("settlement on %s timed out, tx=%s", ledger, attempt.tx_ref)
                return settlement_failed(
                    payload.payer,
                    ledger,
                    classify_timeout(attempt.tx_ref),
                    transaction_ref=attempt.tx_ref,
                )
            result = settlement_failed(
                payload.payer,
                ledger,
                SettlementReason.BACKEND_UNAVAILABLE,
                "timed out before submission",
            )
        except BaseException:
            # Cancelled or crashed: only a proof that never reached the
            # node may be retried.
            if not attempt.broadcast_started:
                self._release(key)
            raise

        if not result.success and self._may_release(result):
            self._release(key)
        return result

    @staticmethod
    def _may_release(result: SettlementResult) -> bool:
        # A definite failure frees the proof for another attempt; an
        # unknown outcome keeps it claimed.
        reason = result.error_reason or ""
        return not reason.startswith(SettlementReason.OUTCOME_UNKNOWN)

    def _release(self, key: ProofKey) -> None:
        if self._consumed is not None:
            self._consumed.release(key)

    async def _submit(
        self, proof: PaymentProof, adapter: LedgerAdapter, attempt: _Attempt
    ) -> SettlementResult | None:
        """Phases 1 and 2 under the key lock. None means accepted by the node."""
        payload = proof.payload
        ledger = adapter.config.name

        async with self.lock_for(ledger, adapter.key_id):
            try:
                allowance = await adapter.allowance_of(payload.payer)
                if allowance is not None and allowance < payload.amount:
                    logger.info(
                        "settlement on %s refused: allowance %d < %d",
                        ledger,
                        allowance,
                        payload.amount,
                    )
                    return settlement_failed(
                        payload.payer,
                        ledger,
                        SettlementReason.INSUFFICIENT_ALLOWANCE,
                        f"{allowance} < {payload.amount}",
                    )
                prepared: PreparedTransfer = await adapter.prepare(payload)
            except LedgerRpcError as exc:
                return settlement_failed(payload.payer, ledger, classify_rpc_error(exc))
            except ValueError as exc:
                return settlement_failed(payload.payer, ledger, SettlementReason.FAILED, str(exc))
            except Exception as exc:
                logger.warning("settlement on %s: ledger unreachable: %s", ledger, exc)
                return settlement_failed(payload.payer, ledger, classify_connection_error(exc))

            attempt.tx_ref = prepared.tx_ref
            attempt.broadcast_started = True
            try:
                submitted = await adapter.broadcast(prepared)
            except Exception as exc:
                logger.warning("broadcast on %s lost, tx=%s: %s", ledger, prepared.tx_ref, exc)
                return settlement_failed(
                    payload.payer,
                    ledger,
                    classify_broadcast_error(exc, prepared.tx_ref),
                    transaction_ref=prepared.tx_ref,
                )

        if not submitted.accepted:
            logger.warning("ledger %s rejected tx %s: %s", ledger, prepared.tx_ref, submitted.detail)
            return settlement_failed(
                payload.payer,
                ledger,
                SettlementReason.FAILED,
                submitted.detail or "rejected by ledger",
                transaction_ref=submitted.tx_ref or prepared.tx_ref,
            )

        if submitted.tx_ref:
            attempt.tx_ref = submitted.tx_ref
        logger.info("broadcast on %s accepted, tx=%s", ledger, attempt.tx_ref)
        return None

    async def _confirm(
        self, proof: PaymentProof, adapter: LedgerAdapter, tx_ref: str
    ) -> SettlementResult:
        """Phase 3. Polls until final; the caller's deadline bounds it."""
        payload = proof.payload
        ledger = adapter.config.name

        while True:
            try:
                status = await adapter.get_status(tx_ref)
            except Exception as exc:
                logger.debug("status poll for %s failed: %s", tx_ref, exc)
            else:
                if status.final:
                    if status.succeeded:
                        logger.info("settled on %s tx=%s", ledger, tx_ref)
                        return settlement_ok(payload.payer, tx_ref, ledger)
                    logger.warning("tx %s failed on %s: %s", tx_ref, ledger, status.detail)
                    return settlement_failed(
                        payload.payer,
                        ledger,
                        SettlementReason.FAILED,
                        status.detail or "transaction failed",
                        transaction_ref=tx_ref,
                    )
            await self._sleep(self._config.confirmation_poll_seconds)
