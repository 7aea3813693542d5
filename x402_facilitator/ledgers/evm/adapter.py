"""
EVM ledger adapters.

Two families share one RPC client and one broadcast/confirm path:

    - Erc20DelegatedAdapter: the payer signs an EIP-712 ``Payment`` and
      has approved the facilitator on the token. The facilitator key
      submits ``transferFrom(payer, payee, amount)`` and pays gas. It is
      never the source or destination of funds.
    - NativePresignedAdapter: the native asset has no delegation
      primitive, so the payer signs the transfer itself and the
      facilitator rebroadcasts the bytes unchanged.

Node refusals come back as ``SubmitResult(accepted=False)`` with the
node's own text. Transport failures propagate.
"""

from __future__ import annotations

import logging

from eth_utils import to_checksum_address

from x402_facilitator.config import LedgerConfig
from x402_facilitator.errors import LedgerRpcError
from x402_facilitator.ledgers.base import (
    AuthOutcome,
    MalformedAuth,
    PreparedTransfer,
    SubmitResult,
    TxStatus,
)
from x402_facilitator.ledgers.evm.rawtx import parse_raw_transaction, verify_presigned
from x402_facilitator.ledgers.evm.rpc import (
    EvmRpcClient,
    encode_transfer_from,
    parse_receipt_status,
)
from x402_facilitator.ledgers.evm.signer import EvmSigner
from x402_facilitator.ledgers.evm.typed_data import verify_typed_payment
from x402_facilitator.models import PaymentPayload, PaymentRequirement

logger = logging.getLogger(__name__)

# Headroom over eth_estimateGas; token contracts with hooks vary by caller.
GAS_HEADROOM_PERCENT = 20

# Node replies that mean the exact bytes are already in the mempool.
_ALREADY_KNOWN = ("already known", "known transaction")


class _EvmAdapter:
    """Broadcast and receipt polling shared by both EVM families."""

    def __init__(self, config: LedgerConfig, client: EvmRpcClient) -> None:
        if config.chain_id is None or not config.identity:
            raise ValueError(f"{config.name}: EVM adapter needs chain_id and identity")
        self._config = config
        self._client = client
        self._chain_id: int = config.chain_id

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def client(self) -> EvmRpcClient:
        return self._client

    async def broadcast(self, prepared: PreparedTransfer) -> SubmitResult:
        try:
            tx_hash = await self._client.send_raw_transaction(prepared.raw)
        except LedgerRpcError as exc:
            if any(marker in exc.message.lower() for marker in _ALREADY_KNOWN):
                return SubmitResult(accepted=True, tx_ref=prepared.tx_ref)
            return SubmitResult(accepted=False, tx_ref=prepared.tx_ref, detail=exc.message)
        return SubmitResult(accepted=True, tx_ref=tx_hash or prepared.tx_ref)

    async def get_status(self, tx_ref: str) -> TxStatus:
        receipt = await self._client.get_transaction_receipt(tx_ref)
        if receipt is None:
            return TxStatus(found=False)
        succeeded = parse_receipt_status(receipt)
        return TxStatus(
            found=True,
            final=True,
            succeeded=succeeded,
            detail=None if succeeded else "transaction reverted",
        )


class Erc20DelegatedAdapter(_EvmAdapter):
    """ERC-20 token with a standing ``approve`` to the facilitator.

    Args:
        config: Ledger configuration (``asset`` is the token contract).
        client: RPC client for the ledger.
        signer: Facilitator's signer. Its address must equal
            ``config.identity``.
    """

    def __init__(
        self, config: LedgerConfig, client: EvmRpcClient, signer: EvmSigner
    ) -> None:
        super().__init__(config, client)
        if signer.address.lower() != (config.identity or "").lower():
            raise ValueError(f"{config.name}: signing key does not match facilitator address")
        self._signer = signer

    @property
    def key_id(self) -> str:
        return self._signer.key_id

    def authenticate(
        self, payload: PaymentPayload, requirement: PaymentRequirement
    ) -> AuthOutcome:
        if payload.ledger_specific_auth is not None:
            return MalformedAuth("signed transaction is not accepted on this ledger")
        # Domain is always our own address, whatever the payee says.
        return verify_typed_payment(payload, self._chain_id, self._signer.address)

    async def balance_of(self, identity: str) -> int:
        return await self._client.token_balance_of(self._config.asset, identity)

    async def allowance_of(self, owner: str) -> int | None:
        return await self._client.token_allowance(
            self._config.asset, owner, self._signer.address
        )

    async def prepare(self, payload: PaymentPayload) -> PreparedTransfer:
        token = to_checksum_address(self._config.asset)
        data = encode_transfer_from(payload.payer, payload.payee, payload.amount)
        sender = self._signer.address

        nonce = await self._client.get_transaction_count(sender, "pending")
        gas_price = await self._client.gas_price()
        gas = await self._client.estimate_gas({"from": sender, "to": token, "data": data})

        signed = self._signer.sign(
            {
                "chainId": self._chain_id,
                "nonce": nonce,
                "to": token,
                "value": 0,
                "data": data,
                "gas": gas * (100 + GAS_HEADROOM_PERCENT) // 100,
                "gasPrice": gas_price,
            }
        )
        logger.debug(
            "prepared transferFrom on %s nonce=%d tx=%s", self._config.name, nonce, signed.tx_hash
        )
        return PreparedTransfer(raw=signed.raw_hex, tx_ref=signed.tx_hash)


class NativePresignedAdapter(_EvmAdapter):
    """Native asset paid by a transaction the payer signed in full.

    The facilitator identity keys the settlement lock. Nothing is signed
    with the facilitator key on this ledger.
    """

    @property
    def key_id(self) -> str:
        return self._config.identity or ""

    def authenticate(
        self, payload: PaymentPayload, requirement: PaymentRequirement
    ) -> AuthOutcome:
        return verify_presigned(payload, self._chain_id)

    async def balance_of(self, identity: str) -> int:
        return await self._client.get_balance(identity)

    async def allowance_of(self, owner: str) -> int | None:
        return None

    async def prepare(self, payload: PaymentPayload) -> PreparedTransfer:
        if not payload.ledger_specific_auth:
            raise ValueError("signed transaction is required on this ledger")
        tx = parse_raw_transaction(payload.ledger_specific_auth)
        return PreparedTransfer(raw=tx.raw_hex, tx_ref=tx.tx_hash)
