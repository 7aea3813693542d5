"""
Ledger-independent payment invariants.

Pure: no I/O, no clock reads (``now`` is passed in). Checks run in a
fixed order so the reported reason is deterministic when several fail:

    1. ``now <= deadline``            else "expired"
    2. ``amount >= min_amount``       else "insufficient amount"
    3. ``payee == requirement.payee`` else "invalid recipient"
       (and the payee is never the facilitator itself)
"""

from __future__ import annotations

from dataclasses import dataclass

from x402_facilitator.errors import InvalidReason
from x402_facilitator.models import PaymentPayload, PaymentRequirement, same_identity


@dataclass(frozen=True)
class Violation:
    """A failed invariant."""

    reason: InvalidReason
    detail: str | None = None


def check(
    payload: PaymentPayload,
    requirement: PaymentRequirement,
    now: int,
    facilitator_identity: str | None = None,
) -> Violation | None:
    """Check a payload against the merchant's requirement.

    Args:
        payload: The decoded payment payload.
        requirement: The merchant's published requirement.
        now: Current unix time in seconds.
        facilitator_identity: The facilitator's own identity on this
            ledger. A payload paying the facilitator is rejected.

    Returns:
        None when every invariant holds, else the first Violation.
    """
    if now > payload.deadline:
        return Violation(InvalidReason.EXPIRED, f"deadline {payload.deadline} < now {now}")

    if payload.amount < requirement.min_amount:
        return Violation(
            InvalidReason.INSUFFICIENT_AMOUNT,
            f"{payload.amount} < {requirement.min_amount}",
        )

    if not same_identity(payload.payee, requirement.payee):
        return Violation(InvalidReason.INVALID_RECIPIENT)

    if facilitator_identity and same_identity(payload.payee, facilitator_identity):
        return Violation(InvalidReason.INVALID_RECIPIENT, "payee is the facilitator")

    return None
