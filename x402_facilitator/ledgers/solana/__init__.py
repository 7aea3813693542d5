"""
Solana SPL ledger family.

Public API:
    - ``verify_payment_message()`` — Ed25519 over the pipe-delimited message.
    - ``SolanaRpcClient`` — token account, blockhash, send, status.
    - ``SplDelegatedAdapter`` — ``TransferChecked`` as approved delegate.
    - ``SolanaSigner``, ``KeypairSigner`` — secrets boundary.
"""

from x402_facilitator.ledgers.solana.adapter import (
    SplDelegatedAdapter,
    associated_token_address,
)
from x402_facilitator.ledgers.solana.message import payment_message, verify_payment_message
from x402_facilitator.ledgers.solana.rpc import (
    SignatureStatus,
    SolanaRpcClient,
    TokenAccountState,
)
from x402_facilitator.ledgers.solana.signer import (
    KeypairSigner,
    SignedSolanaTransaction,
    SolanaSigner,
)

__all__ = [
    "KeypairSigner",
    "SignatureStatus",
    "SignedSolanaTransaction",
    "SolanaRpcClient",
    "SolanaSigner",
    "SplDelegatedAdapter",
    "TokenAccountState",
    "associated_token_address",
    "payment_message",
    "verify_payment_message",
]
