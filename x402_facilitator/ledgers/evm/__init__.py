"""
EVM ledger families.

Public API:

    Pure layer (no I/O):
        - ``verify_typed_payment()`` — EIP-712 ``Payment`` recovery.
        - ``parse_raw_transaction()``, ``verify_presigned()`` — pre-signed
          native transfers.

    Impure layer (network I/O):
        - ``EvmRpcClient`` — ``eth_*`` JSON-RPC wrappers.
        - ``Erc20DelegatedAdapter`` — ``transferFrom`` with a facilitator
          allowance.
        - ``NativePresignedAdapter`` — rebroadcast of payer-signed bytes.

    Secrets boundary:
        - ``EvmSigner``, ``LocalAccountSigner``, ``SignedTransaction``.
"""

from x402_facilitator.ledgers.evm.adapter import (
    Erc20DelegatedAdapter,
    NativePresignedAdapter,
)
from x402_facilitator.ledgers.evm.rawtx import (
    RawTransaction,
    parse_raw_transaction,
    verify_presigned,
)
from x402_facilitator.ledgers.evm.rpc import EvmRpcClient
from x402_facilitator.ledgers.evm.signer import (
    EvmSigner,
    LocalAccountSigner,
    SignedTransaction,
)
from x402_facilitator.ledgers.evm.typed_data import (
    DOMAIN_NAME,
    DOMAIN_VERSION,
    build_typed_data,
    payment_signable,
    verify_typed_payment,
)

__all__ = [
    "DOMAIN_NAME",
    "DOMAIN_VERSION",
    "Erc20DelegatedAdapter",
    "EvmRpcClient",
    "EvmSigner",
    "LocalAccountSigner",
    "NativePresignedAdapter",
    "RawTransaction",
    "SignedTransaction",
    "build_typed_data",
    "parse_raw_transaction",
    "payment_signable",
    "verify_presigned",
    "verify_typed_payment",
]
