"""
Ledger adapters.

Each supported ledger family implements ``LedgerAdapter`` from
``ledgers.base``. Concrete families live in ``ledgers.evm`` and
``ledgers.solana``; all JSON-RPC goes through ``ledgers.transport``.
"""

from x402_facilitator.ledgers.base import (
    Authenticated,
    AuthOutcome,
    LedgerAdapter,
    MalformedAuth,
    PreparedTransfer,
    SignatureInvalid,
    SubmitResult,
    TxStatus,
)
from x402_facilitator.ledgers.transport import (
    HttpxTransport,
    JsonRpcEndpoint,
    JsonRpcTransport,
)

__all__ = [
    "AuthOutcome",
    "Authenticated",
    "HttpxTransport",
    "JsonRpcEndpoint",
    "JsonRpcTransport",
    "LedgerAdapter",
    "MalformedAuth",
    "PreparedTransfer",
    "SignatureInvalid",
    "SubmitResult",
    "TxStatus",
]
