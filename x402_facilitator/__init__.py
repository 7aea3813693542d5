"""
x402 payment facilitator.

Verifies signed payment authorizations and settles them on the target
ledger without ever holding the payer's funds.

Public API:

    Entry point:
        - ``Router`` — verify, settle, discover.
        - ``FacilitatorConfig``, ``LedgerConfig`` — immutable configuration.

    Wire format:
        - ``decode()``, ``encode()``, ``peek()`` — payment header codec.
        - ``PaymentProof``, ``PaymentPayload``, ``PaymentRequirement``.
        - ``VerificationResult``, ``SettlementResult``, ``SupportedKind``.

    Building blocks:
        - ``CapabilityRegistry`` — enabled ``(scheme, ledger)`` pairs.
        - ``SettlementExecutor`` — real or simulated settlement.
        - ``InMemoryConsumedProofStore``, ``SqliteConsumedProofStore``.
"""

from x402_facilitator.codec import decode, encode, peek
from x402_facilitator.config import (
    FacilitatorConfig,
    LedgerConfig,
    LedgerFamily,
    SettlementMode,
)
from x402_facilitator.errors import (
    ConfigError,
    DecodeError,
    FacilitatorError,
    InvalidReason,
    LedgerRpcError,
    MalformedEnvelope,
    SchemaViolation,
    SettlementReason,
)
from x402_facilitator.models import (
    EXACT_SCHEME,
    PaymentPayload,
    PaymentProof,
    PaymentRequirement,
    SettlementResult,
    SupportedKind,
    VerificationResult,
)
from x402_facilitator.registry import CapabilityRegistry
from x402_facilitator.replay import (
    InMemoryConsumedProofStore,
    ProofKey,
    SqliteConsumedProofStore,
)
from x402_facilitator.router import Router
from x402_facilitator.settlement import SettlementExecutor, is_simulated_reference

__version__ = "0.1.0"

__all__ = [
    "EXACT_SCHEME",
    "CapabilityRegistry",
    "ConfigError",
    "DecodeError",
    "FacilitatorConfig",
    "FacilitatorError",
    "InMemoryConsumedProofStore",
    "InvalidReason",
    "LedgerConfig",
    "LedgerFamily",
    "LedgerRpcError",
    "MalformedEnvelope",
    "PaymentPayload",
    "PaymentProof",
    "PaymentRequirement",
    "ProofKey",
    "Router",
    "SchemaViolation",
    "SettlementExecutor",
    "SettlementMode",
    "SettlementResult",
    "SqliteConsumedProofStore",
    "SupportedKind",
    "VerificationResult",
    "decode",
    "encode",
    "is_simulated_reference",
    "peek",
    "__version__",
]
