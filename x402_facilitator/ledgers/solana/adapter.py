"""
SPL delegated ledger adapter.

The payer has run ``approve`` on their associated token account with
the facilitator as delegate. Settlement is a single ``TransferChecked``
from the payer's ATA to the payee's ATA, signed by the facilitator as
delegate authority and fee payer. The facilitator's own token account
is never involved.

The payee's ATA must already exist; the facilitator does not create
accounts on anyone's behalf.
"""

from __future__ import annotations

import logging

from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    get_associated_token_address,
    transfer_checked,
)

from x402_facilitator.config import LedgerConfig
from x402_facilitator.errors import LedgerRpcError
from x402_facilitator.ledgers.base import (
    AuthOutcome,
    MalformedAuth,
    PreparedTransfer,
    SubmitResult,
    TxStatus,
)
from x402_facilitator.ledgers.solana.message import verify_payment_message
from x402_facilitator.ledgers.solana.rpc import SolanaRpcClient
from x402_facilitator.ledgers.solana.signer import SolanaSigner
from x402_facilitator.models import PaymentPayload, PaymentRequirement

logger = logging.getLogger(__name__)


def associated_token_address(owner: str, mint: str) -> str:
    """ATA of ``owner`` for ``mint`` under the classic token program."""
    return str(get_associated_token_address(Pubkey.from_string(owner), Pubkey.from_string(mint)))


class SplDelegatedAdapter:
    """SPL token with the facilitator as approved delegate.

    Args:
        config: Ledger configuration (``asset`` is the mint).
        client: RPC client for the cluster.
        signer: Facilitator's signer. Its public key must equal
            ``config.identity``.
    """

    def __init__(
        self, config: LedgerConfig, client: SolanaRpcClient, signer: SolanaSigner
    ) -> None:
        if signer.key_id != config.identity:
            raise ValueError(f"{config.name}: signing key does not match facilitator address")
        self._config = config
        self._client = client
        self._signer = signer
        self._mint = Pubkey.from_string(config.asset)

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def key_id(self) -> str:
        return self._signer.key_id

    def authenticate(
        self, payload: PaymentPayload, requirement: PaymentRequirement
    ) -> AuthOutcome:
        if payload.ledger_specific_auth is not None:
            return MalformedAuth("signed transaction is not accepted on this ledger")
        return verify_payment_message(payload)

    async def balance_of(self, identity: str) -> int:
        account = await self._client.get_token_account(
            associated_token_address(identity, self._config.asset)
        )
        return account.amount

    async def allowance_of(self, owner: str) -> int | None:
        account = await self._client.get_token_account(
            associated_token_address(owner, self._config.asset)
        )
        if not account.exists or account.delegate != self._signer.key_id:
            return 0
        return account.delegated_amount

    async def prepare(self, payload: PaymentPayload) -> PreparedTransfer:
        source = associated_token_address(payload.payer, self._config.asset)
        dest = associated_token_address(payload.payee, self._config.asset)

        dest_account = await self._client.get_token_account(dest)
        if not dest_account.exists:
            raise ValueError(f"payee has no token account for mint {self._config.asset}")

        instruction = transfer_checked(
            TransferCheckedParams(
                program_id=TOKEN_PROGRAM_ID,
                source=Pubkey.from_string(source),
                mint=self._mint,
                dest=Pubkey.from_string(dest),
                owner=self._signer.pubkey,
                amount=payload.amount,
                decimals=self._config.asset_decimals,
            )
        )
        blockhash = Hash.from_string(await self._client.get_latest_blockhash())
        message = Message.new_with_blockhash([instruction], self._signer.pubkey, blockhash)
        signed = self._signer.sign(message, blockhash)
        logger.debug("prepared TransferChecked on %s tx=%s", self._config.name, signed.signature)
        return PreparedTransfer(raw=signed.raw_base64, tx_ref=signed.signature)

    async def broadcast(self, prepared: PreparedTransfer) -> SubmitResult:
        try:
            signature = await self._client.send_transaction(prepared.raw)
        except LedgerRpcError as exc:
            return SubmitResult(accepted=False, tx_ref=prepared.tx_ref, detail=exc.message)
        return SubmitResult(accepted=True, tx_ref=signature)

    async def get_status(self, tx_ref: str) -> TxStatus:
        status = await self._client.get_signature_status(tx_ref)
        if not status.found:
            return TxStatus(found=False)
        if status.err is not None:
            return TxStatus(found=True, final=True, succeeded=False, detail=str(status.err))
        if status.is_final:
            return TxStatus(found=True, final=True, succeeded=True)
        return TxStatus(found=True)
