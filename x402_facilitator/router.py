"""
Router — the entry point for verify, settle and discovery.

Steps for both verify and settle, short-circuiting on the first failure:

    1. decode the header          failure → internal result
    2. scheme must be "exact"     else "unsupported scheme"
    3. ledger must be enabled     else "unsupported ledger"
    4. requirement must describe the same scheme, ledger, asset and
       facilitator as the proof   else "requirement mismatch"
    5. dispatch to the ledger's adapter

Verify then checks, in order: authorization (signature or pre-signed
transaction), the ledger-independent invariants, replay, and balance.
Settle re-runs the pure checks (authorization, invariants) and hands
the proof to the SettlementExecutor; it does not re-query balance.

Business failures never raise. ``handle_*`` wrap the operations for an
HTTP layer and return ``(status_code, body)``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from x402_facilitator import invariants
from x402_facilitator.codec import decode
from x402_facilitator.config import FacilitatorConfig
from x402_facilitator.errors import (
    DecodeError,
    InvalidReason,
    SchemaViolation,
    short_error,
)
from x402_facilitator.invariants import Violation
from x402_facilitator.ledgers.base import Authenticated, LedgerAdapter, MalformedAuth
from x402_facilitator.models import (
    EXACT_SCHEME,
    PaymentProof,
    PaymentRequirement,
    SettlementResult,
    VerificationResult,
    same_identity,
)
from x402_facilitator.registry import CapabilityRegistry
from x402_facilitator.replay import ConsumedProofStore, ProofKey
from x402_facilitator.reporter import (
    internal_settlement_error,
    internal_verification_error,
    settlement_failed,
    verification_ok,
    verification_rejected,
)
from x402_facilitator.settlement import SettlementExecutor

logger = logging.getLogger(__name__)


class Router:
    """Routes proofs to ledger adapters.

    Args:
        config: Facilitator configuration.
        registry: Capability registry. Built from ``config`` if omitted.
        executor: Settlement executor. Built from ``config`` if omitted.
        clock: Returns unix time in seconds.
        consumed_proofs: Optional replay store, shared with the executor
            when the executor is built here.
    """

    def __init__(
        self,
        config: FacilitatorConfig,
        registry: CapabilityRegistry | None = None,
        executor: SettlementExecutor | None = None,
        *,
        clock: Callable[[], float] = time.time,
        consumed_proofs: ConsumedProofStore | None = None,
    ) -> None:
        self._config = config
        self._registry = registry or CapabilityRegistry(config)
        self._consumed = consumed_proofs
        self._executor = executor or SettlementExecutor(config, consumed_proofs)
        self._clock = clock

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    # -----------------------------------------------------------------
    # Shared steps
    # -----------------------------------------------------------------

    def _dispatch(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> LedgerAdapter | Violation:
        if proof.scheme != EXACT_SCHEME:
            return Violation(InvalidReason.UNSUPPORTED_SCHEME, proof.scheme)
        adapter = self._registry.adapter_for(proof.ledger)
        if adapter is None or not self._registry.is_supported(proof.scheme, proof.ledger):
            return Violation(InvalidReason.UNSUPPORTED_LEDGER, proof.ledger)

        ledger = adapter.config
        if requirement.scheme != proof.scheme:
            return Violation(InvalidReason.REQUIREMENT_MISMATCH, "scheme")
        if self._registry.canonical(requirement.ledger) != ledger.name:
            return Violation(InvalidReason.REQUIREMENT_MISMATCH, "network")
        if requirement.asset and not same_identity(requirement.asset, ledger.asset):
            return Violation(InvalidReason.REQUIREMENT_MISMATCH, "asset")
        if requirement.facilitator_identity and not same_identity(
            requirement.facilitator_identity, ledger.identity or ""
        ):
            return Violation(InvalidReason.REQUIREMENT_MISMATCH, "facilitator")
        return adapter

    def _check_pure(
        self, proof: PaymentProof, requirement: PaymentRequirement, adapter: LedgerAdapter
    ) -> Violation | None:
        payload = proof.payload
        outcome = adapter.authenticate(payload, requirement)
        if isinstance(outcome, MalformedAuth):
            return Violation(InvalidReason.MALFORMED_AUTH, outcome.detail)
        if not isinstance(outcome, Authenticated):
            return Violation(InvalidReason.INVALID_SIGNATURE, outcome.detail)
        return invariants.check(
            payload, requirement, int(self._clock()), adapter.config.identity
        )

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    async def verify(self, header: str, requirement: PaymentRequirement) -> VerificationResult:
        """Decide whether a proof would settle. Never raises."""
        try:
            proof = decode(header)
        except DecodeError as exc:
            logger.info("verify: undecodable header: %s", exc)
            return internal_verification_error(header, exc)

        try:
            result = await self._verify(proof, requirement)
        except Exception as exc:
            logger.exception("verify: internal error on %s", proof.ledger)
            return internal_verification_error(header, exc)

        logger.info(
            "verify %s payer=%s valid=%s reason=%s",
            proof.ledger,
            result.payer,
            result.is_valid,
            result.invalid_reason,
        )
        return result

    async def _verify(
        self, proof: PaymentProof, requirement: PaymentRequirement
    ) -> VerificationResult:
        payload = proof.payload
        routed = self._dispatch(proof, requirement)
        if isinstance(routed, Violation):
            return verification_rejected(payload.payer, routed.reason, routed.detail)
        adapter = routed

        violation = self._check_pure(proof, requirement, adapter)
        if violation is not None:
            return verification_rejected(payload.payer, violation.reason, violation.detail)

        if self._consumed is not None and self._consumed.is_consumed(
            ProofKey.of(adapter.config.name, payload)
        ):
            return verification_rejected(payload.payer, InvalidReason.ALREADY_SETTLED)

        try:
            balance = await adapter.balance_of(payload.payer)
        except Exception as exc:
            logger.warning("verify: balance query on %s failed: %s", adapter.config.name, exc)
            return verification_rejected(
                payload.payer, InvalidReason.BALANCE_UNAVAILABLE, short_error(exc)
            )
        if balance < payload.amount:
            return verification_rejected(
                payload.payer,
                InvalidReason.INSUFFICIENT_BALANCE,
                f"{balance} < {payload.amount}",
            )
        return verification_ok(payload.payer)

    async def settle(self, header: str, requirement: PaymentRequirement) -> SettlementResult:
        """Settle a proof on its ledger. Never raises."""
        try:
            proof = decode(header)
        except DecodeError as exc:
            logger.info("settle: undecodable header: %s", exc)
            return internal_settlement_error(header, exc)

        payload = proof.payload
        try:
            routed = self._dispatch(proof, requirement)
            if isinstance(routed, Violation):
                return settlement_failed(payload.payer, proof.ledger, routed.reason, routed.detail)
            adapter = routed

            violation = self._check_pure(proof, requirement, adapter)
            if violation is not None:
                return settlement_failed(
                    payload.payer, adapter.config.name, violation.reason, violation.detail
                )
            result = await self._executor.settle(proof, requirement, adapter)
        except Exception as exc:
            logger.exception("settle: internal error on %s", proof.ledger)
            return internal_settlement_error(header, exc)

        logger.info(
            "settle %s payer=%s success=%s tx=%s reason=%s",
            result.ledger,
            result.payer,
            result.success,
            result.transaction_ref,
            result.error_reason,
        )
        return result

    def discover(self) -> dict[str, Any]:
        """Configured ``(scheme, ledger)`` kinds for ``/supported``."""
        return {"kinds": [kind.to_dict() for kind in self._registry.kinds()]}

    # -----------------------------------------------------------------
    # HTTP-shaped wrappers
    # -----------------------------------------------------------------

    @staticmethod
    def _parse_body(body: Any) -> tuple[str, PaymentRequirement]:
        if not isinstance(body, dict):
            raise SchemaViolation("request body must be an object")
        header = body.get("paymentHeader")
        if not isinstance(header, str):
            raise SchemaViolation("paymentHeader must be a string")
        return header, PaymentRequirement.from_dict(body.get("paymentRequirements"))

    async def handle_verify(self, body: Any) -> tuple[int, dict[str, object]]:
        try:
            header, requirement = self._parse_body(body)
        except SchemaViolation as exc:
            header = body.get("paymentHeader") if isinstance(body, dict) else None
            return 400, internal_verification_error(header, exc).to_dict()
        result = await self.verify(header, requirement)
        return (500 if result.internal else 200), result.to_dict()

    async def handle_settle(self, body: Any) -> tuple[int, dict[str, object]]:
        try:
            header, requirement = self._parse_body(body)
        except SchemaViolation as exc:
            header = body.get("paymentHeader") if isinstance(body, dict) else None
            return 400, internal_settlement_error(header, exc).to_dict()
        result = await self.settle(header, requirement)
        return (500 if result.internal else 200), result.to_dict()

    def handle_discover(self) -> tuple[int, dict[str, Any]]:
        return 200, self.discover()
