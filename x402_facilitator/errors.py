"""
Error taxonomy for the facilitator.

Two kinds of failure exist and they never mix:

    - **Exceptional**: the request could not be understood (bad envelope,
      bad schema) or the facilitator is misconfigured. These are raised
      as ``FacilitatorError`` subclasses and surface as internal errors.
    - **Business**: the request was understood and rejected (expired,
      underpaid, wrong recipient, ledger refused the transfer). These are
      never raised out of the Router. They travel as short, stable reason
      strings inside result objects.

Reason strings are matched by substring in tests and by clients, so the
values below are part of the public contract.
"""

from __future__ import annotations

from enum import StrEnum


# =========================================================================
# Exceptions
# =========================================================================


class FacilitatorError(Exception):
    """Base class for all exceptional facilitator failures."""


class DecodeError(FacilitatorError):
    """The payment header could not be turned into a PaymentProof."""


class MalformedEnvelope(DecodeError):
    """Header is not valid base64, UTF-8, or JSON."""


class SchemaViolation(DecodeError):
    """Header is valid JSON but required fields are absent or mistyped."""


class ConfigError(FacilitatorError):
    """Facilitator configuration is inconsistent."""


class LedgerRpcError(FacilitatorError):
    """A ledger node answered with a JSON-RPC error object.

    Attributes:
        code: JSON-RPC error code, if the node supplied one.
        message: The node's own error text, surfaced verbatim.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# =========================================================================
# Reason taxonomy
# =========================================================================


class InvalidReason(StrEnum):
    """Stable, machine-matchable reasons for rejected payments."""

    UNSUPPORTED_SCHEME = "unsupported scheme"
    UNSUPPORTED_LEDGER = "unsupported ledger"
    REQUIREMENT_MISMATCH = "requirement mismatch"
    INVALID_SIGNATURE = "invalid signature"
    MALFORMED_AUTH = "malformed authorization"
    EXPIRED = "expired"
    INSUFFICIENT_AMOUNT = "insufficient amount"
    INVALID_RECIPIENT = "invalid recipient"
    INSUFFICIENT_BALANCE = "insufficient balance"
    BALANCE_UNAVAILABLE = "balance check failed"
    ALREADY_SETTLED = "proof already settled"
    INTERNAL_ERROR = "internal error"


class SettlementReason(StrEnum):
    """Stable reasons for settlement failures."""

    FAILED = "settlement failed"
    OUTCOME_UNKNOWN = "settlement outcome unknown"
    INSUFFICIENT_ALLOWANCE = "insufficient allowance"
    BACKEND_UNAVAILABLE = "ledger unavailable"


def with_detail(reason: str, detail: str | None) -> str:
    """Join a stable reason and an optional free-text detail."""
    if not detail:
        return str(reason)
    return f"{reason}: {detail}"


# =========================================================================
# Classification helpers
# =========================================================================


def classify_connection_error(exc: BaseException) -> str:
    """Classify a failure that happened before a node answered.

    Used when the call never reached the ledger node (DNS failure, TLS
    error, refused connection, HTTP status error).
    """
    return with_detail(SettlementReason.BACKEND_UNAVAILABLE, short_error(exc))


def classify_rpc_error(exc: LedgerRpcError) -> str:
    """Classify a JSON-RPC error returned by the node (verbatim text)."""
    return with_detail(SettlementReason.FAILED, exc.message)


def classify_timeout(tx_ref: str | None) -> str:
    """Classify a settlement that ran out of time.

    The transfer may still land, so the caller is told to re-check
    rather than to assume failure.
    """
    if tx_ref:
        return with_detail(
            SettlementReason.OUTCOME_UNKNOWN,
            f"timed out waiting for {tx_ref}; re-check before retrying",
        )
    return with_detail(
        SettlementReason.OUTCOME_UNKNOWN,
        "timed out before the ledger acknowledged submission; re-check before retrying",
    )


def short_error(exc: BaseException) -> str:
    text = str(exc).strip()
    if not text:
        return type(exc).__name__
    # First line only: node errors can carry multi-line debug dumps.
    return text.splitlines()[0]


def classify_broadcast_error(exc: BaseException, tx_ref: str) -> str:
    """Classify a transport failure while handing bytes to the node.

    The node may have received the transaction before the connection
    dropped, so this is an unknown outcome, not a failure.
    """
    return with_detail(
        SettlementReason.OUTCOME_UNKNOWN,
        f"{short_error(exc)}; re-check {tx_ref} before retrying",
    )
