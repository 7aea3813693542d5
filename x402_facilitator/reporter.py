"""
Result reporter.

Every path out of the Router ends in one of two shapes:
VerificationResult or SettlementResult. The constructors here are the
only place those shapes are built, so reason strings stay inside the
taxonomy in ``errors.py`` and callers never see a bare exception.

Internal errors still carry ``payer`` and ``ledger``, recovered from the
raw header when possible and "unknown" otherwise.
"""

from __future__ import annotations

from x402_facilitator.codec import peek
from x402_facilitator.errors import FacilitatorError, InvalidReason, short_error, with_detail
from x402_facilitator.models import SettlementResult, VerificationResult


def _describe(exc: BaseException) -> str:
    # Our own errors carry safe, user-facing text; anything else is a bug
    # and only its type is reported.
    if isinstance(exc, FacilitatorError):
        return short_error(exc)
    return type(exc).__name__


# =========================================================================
# Verification
# =========================================================================


def verification_ok(payer: str) -> VerificationResult:
    return VerificationResult(is_valid=True, payer=payer)


def verification_rejected(
    payer: str, reason: str, detail: str | None = None
) -> VerificationResult:
    return VerificationResult(
        is_valid=False, payer=payer, invalid_reason=with_detail(reason, detail)
    )


def internal_verification_error(header: object, exc: BaseException) -> VerificationResult:
    """Result for a verify call that failed before any business check ran."""
    payer, _ = peek(header)
    return VerificationResult(
        is_valid=False,
        payer=payer,
        invalid_reason=with_detail(InvalidReason.INTERNAL_ERROR, _describe(exc)),
        internal=True,
    )


# =========================================================================
# Settlement
# =========================================================================


def settlement_ok(payer: str, transaction_ref: str, ledger: str) -> SettlementResult:
    return SettlementResult(
        success=True, payer=payer, transaction_ref=transaction_ref, ledger=ledger
    )


def settlement_failed(
    payer: str,
    ledger: str,
    reason: str,
    detail: str | None = None,
    *,
    transaction_ref: str = "",
) -> SettlementResult:
    return SettlementResult(
        success=False,
        payer=payer,
        transaction_ref=transaction_ref,
        ledger=ledger,
        error_reason=with_detail(reason, detail),
    )


def internal_settlement_error(header: object, exc: BaseException) -> SettlementResult:
    """Result for a settle call that failed before any business check ran."""
    payer, ledger = peek(header)
    return SettlementResult(
        success=False,
        payer=payer,
        transaction_ref="",
        ledger=ledger,
        error_reason=with_detail(InvalidReason.INTERNAL_ERROR, _describe(exc)),
        internal=True,
    )
