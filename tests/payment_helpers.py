"""
Shared builders and fakes for facilitator tests.

Keys are the well-known Hardhat development keys; they hold nothing on
any real network.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any

from eth_account import Account
from solders.keypair import Keypair

from x402_facilitator.codec import encode
from x402_facilitator.config import (
    BASE,
    BASE_CHAIN_ID,
    BASE_SBC_TOKEN,
    RADIUS_TESTNET,
    RADIUS_TESTNET_CHAIN_ID,
    SOLANA_MAINNET,
    SOLANA_SBC_DECIMALS,
    SOLANA_SBC_MINT,
    FacilitatorConfig,
    LedgerConfig,
    LedgerFamily,
    SettlementMode,
)
from x402_facilitator.ledgers.base import (
    Authenticated,
    AuthOutcome,
    PreparedTransfer,
    SubmitResult,
    TxStatus,
)
from x402_facilitator.ledgers.evm.typed_data import payment_signable
from x402_facilitator.ledgers.solana.message import payment_message
from x402_facilitator.models import (
    EXACT_SCHEME,
    PROTOCOL_VERSION,
    PaymentPayload,
    PaymentProof,
    PaymentRequirement,
)

PAYER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
PAYER = Account.from_key(PAYER_KEY).address
FACILITATOR_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
FACILITATOR = Account.from_key(FACILITATOR_KEY).address
MERCHANT_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
MERCHANT = Account.from_key(MERCHANT_KEY).address

NOW = 1_700_000_000
DEADLINE = NOW + 300
AMOUNT = 50_000_000


def hex_bytes(value: bytes) -> str:
    return "0x" + bytes(value).hex()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def base_ledger(**overrides: Any) -> LedgerConfig:
    kwargs: dict[str, Any] = {
        "name": BASE,
        "family": LedgerFamily.ERC20_DELEGATED,
        "rpc_url": "https://base.example",
        "signing_key": FACILITATOR_KEY,
        "identity": FACILITATOR,
        "chain_id": BASE_CHAIN_ID,
        "asset": BASE_SBC_TOKEN,
        "aliases": (str(BASE_CHAIN_ID),),
    }
    kwargs.update(overrides)
    return LedgerConfig(**kwargs)


def radius_ledger(**overrides: Any) -> LedgerConfig:
    kwargs: dict[str, Any] = {
        "name": RADIUS_TESTNET,
        "family": LedgerFamily.NATIVE_PRESIGNED,
        "rpc_url": "https://radius.example",
        "signing_key": FACILITATOR_KEY,
        "identity": FACILITATOR,
        "chain_id": RADIUS_TESTNET_CHAIN_ID,
        "aliases": (str(RADIUS_TESTNET_CHAIN_ID),),
    }
    kwargs.update(overrides)
    return LedgerConfig(**kwargs)


def solana_ledger(facilitator: Keypair | None = None, **overrides: Any) -> LedgerConfig:
    keypair = facilitator or Keypair()
    kwargs: dict[str, Any] = {
        "name": SOLANA_MAINNET,
        "family": LedgerFamily.SPL_DELEGATED,
        "rpc_url": "https://solana.example",
        "signing_key": str(keypair),
        "identity": str(keypair.pubkey()),
        "asset": SOLANA_SBC_MINT,
        "asset_decimals": SOLANA_SBC_DECIMALS,
    }
    kwargs.update(overrides)
    return LedgerConfig(**kwargs)


def facilitator_config(
    *ledgers: LedgerConfig,
    mode: SettlementMode = SettlementMode.REAL,
    **overrides: Any,
) -> FacilitatorConfig:
    return FacilitatorConfig(
        ledgers=ledgers or (base_ledger(),), settlement_mode=mode, **overrides
    )


# ---------------------------------------------------------------------------
# Proofs
# ---------------------------------------------------------------------------


def evm_payload(
    *,
    chain_id: int = BASE_CHAIN_ID,
    facilitator: str = FACILITATOR,
    signer_key: str = PAYER_KEY,
    **overrides: Any,
) -> PaymentPayload:
    """A typed-data payload signed by ``signer_key``."""
    fields: dict[str, Any] = {
        "payer": PAYER,
        "payee": MERCHANT,
        "amount": AMOUNT,
        "nonce": "1",
        "deadline": DEADLINE,
        "signature": "",
    }
    fields.update(overrides)
    unsigned = PaymentPayload(**fields)
    signed = Account.sign_message(
        payment_signable(unsigned, chain_id, facilitator), private_key=signer_key
    )
    return replace(unsigned, signature=hex_bytes(signed.signature))


def signed_native_transfer(
    *,
    to: str = MERCHANT,
    value: int = AMOUNT,
    chain_id: int = RADIUS_TESTNET_CHAIN_ID,
    key: str = PAYER_KEY,
    eip1559: bool = False,
) -> str:
    tx: dict[str, Any] = {
        "chainId": chain_id,
        "nonce": 0,
        "to": to,
        "value": value,
        "gas": 21_000,
    }
    if eip1559:
        tx.update({"type": 2, "maxFeePerGas": 2_000_000_000, "maxPriorityFeePerGas": 1})
    else:
        tx["gasPrice"] = 1_000_000_000
    return hex_bytes(Account.sign_transaction(tx, key).raw_transaction)


def presigned_payload(**overrides: Any) -> PaymentPayload:
    fields: dict[str, Any] = {
        "payer": PAYER,
        "payee": MERCHANT,
        "amount": AMOUNT,
        "nonce": 0,
        "deadline": DEADLINE,
        "signature": "0x",
        "ledger_specific_auth": signed_native_transfer(),
    }
    fields.update(overrides)
    return PaymentPayload(**fields)


def solana_payload(payer: Keypair, payee: str, **overrides: Any) -> PaymentPayload:
    fields: dict[str, Any] = {
        "payer": str(payer.pubkey()),
        "payee": payee,
        "amount": AMOUNT,
        "nonce": "1700000000123",
        "deadline": DEADLINE,
        "signature": "",
    }
    fields.update(overrides)
    unsigned = PaymentPayload(**fields)
    return replace(unsigned, signature=str(payer.sign_message(payment_message(unsigned))))


def make_proof(payload: PaymentPayload, ledger: str = BASE, scheme: str = EXACT_SCHEME) -> PaymentProof:
    return PaymentProof(
        protocol_version=PROTOCOL_VERSION, scheme=scheme, ledger=ledger, payload=payload
    )


def make_header(payload: PaymentPayload, ledger: str = BASE, scheme: str = EXACT_SCHEME) -> str:
    return encode(make_proof(payload, ledger, scheme))


def make_requirement(**overrides: Any) -> PaymentRequirement:
    kwargs: dict[str, Any] = {
        "scheme": EXACT_SCHEME,
        "ledger": BASE,
        "min_amount": AMOUNT,
        "payee": MERCHANT,
        "asset": BASE_SBC_TOKEN,
    }
    kwargs.update(overrides)
    return PaymentRequirement(**kwargs)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeTransport:
    """Answers JSON-RPC calls from a method → response table."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self._responses = dict(responses or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def respond(self, method: str, response: Any) -> None:
        self._responses[method] = response

    @property
    def methods(self) -> list[str]:
        return [payload["method"] for _, payload in self.calls]

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((url, payload))
        response = self._responses[payload["method"]]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, dict) and ("result" in response or "error" in response):
            return {"jsonrpc": "2.0", "id": payload["id"], **response}
        return {"jsonrpc": "2.0", "id": payload["id"], "result": response}


class FakeAdapter:
    """LedgerAdapter with scripted answers. Records every call."""

    def __init__(
        self,
        config: LedgerConfig,
        *,
        auth: AuthOutcome | None = None,
        balance: int = 10**24,
        balance_error: Exception | None = None,
        allowance: int | None = None,
        prepare_error: Exception | None = None,
        submit_result: SubmitResult | None = None,
        broadcast_error: Exception | None = None,
        statuses: list[TxStatus] | None = None,
        broadcast_delay: float = 0.0,
        key_id: str | None = None,
    ) -> None:
        self._config = config
        self._auth = auth
        self._balance = balance
        self._balance_error = balance_error
        self._allowance = allowance
        self._prepare_error = prepare_error
        self._submit_result = submit_result or SubmitResult(accepted=True, tx_ref="0xfeed")
        self._broadcast_error = broadcast_error
        self._statuses = list(statuses or [TxStatus(found=True, final=True, succeeded=True)])
        self._broadcast_delay = broadcast_delay
        self._key_id = key_id or (config.identity or "")
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def key_id(self) -> str:
        return self._key_id

    def authenticate(
        self, payload: PaymentPayload, requirement: PaymentRequirement
    ) -> AuthOutcome:
        self.calls.append("authenticate")
        return self._auth or Authenticated(payer=payload.payer)

    async def balance_of(self, identity: str) -> int:
        self.calls.append("balance_of")
        if self._balance_error is not None:
            raise self._balance_error
        return self._balance

    async def allowance_of(self, owner: str) -> int | None:
        self.calls.append("allowance_of")
        return self._allowance

    async def prepare(self, payload: PaymentPayload) -> PreparedTransfer:
        self.calls.append("prepare")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self._prepare_error is not None:
            self.in_flight -= 1
            raise self._prepare_error
        return PreparedTransfer(raw="0xraw", tx_ref="0xfeed")

    async def broadcast(self, prepared: PreparedTransfer) -> SubmitResult:
        self.calls.append("broadcast")
        try:
            if self._broadcast_delay:
                await asyncio.sleep(self._broadcast_delay)
            if self._broadcast_error is not None:
                raise self._broadcast_error
            return self._submit_result
        finally:
            self.in_flight -= 1

    async def get_status(self, tx_ref: str) -> TxStatus:
        self.calls.append("get_status")
        if len(self._statuses) > 1:
            return self._statuses.pop(0)
        return self._statuses[0]
