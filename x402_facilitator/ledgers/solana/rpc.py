"""
Solana JSON-RPC client.

Covers the calls the SPL delegated family needs: token account state
(jsonParsed), latest blockhash, transaction submission (base64) and
signature status. Parsing is pure and tested against canned responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from x402_facilitator.errors import LedgerRpcError
from x402_facilitator.ledgers.transport import JsonRpcEndpoint, JsonRpcTransport

DEFAULT_COMMITMENT = "confirmed"
_FINAL_STATUSES = frozenset({"confirmed", "finalized"})


@dataclass(frozen=True)
class TokenAccountState:
    """Parsed SPL token account.

    Attributes:
        exists: False when the account has not been created.
        amount: Balance in minor units.
        delegate: Delegate authority, if any.
        delegated_amount: Amount the delegate may still move.
    """

    exists: bool
    amount: int = 0
    mint: str | None = None
    owner: str | None = None
    delegate: str | None = None
    delegated_amount: int = 0


@dataclass(frozen=True)
class SignatureStatus:
    """One entry of ``getSignatureStatuses``."""

    found: bool
    confirmation_status: str | None = None
    err: Any = None

    @property
    def is_final(self) -> bool:
        return self.err is not None or self.confirmation_status in _FINAL_STATUSES


def _value(result: Any) -> Any:
    if not isinstance(result, dict) or "value" not in result:
        raise LedgerRpcError(f"expected {{context, value}} result, got: {result!r}")
    return result["value"]


def parse_token_account(result: Any) -> TokenAccountState:
    """Parse a jsonParsed ``getAccountInfo`` result for a token account."""
    value = _value(result)
    if value is None:
        return TokenAccountState(exists=False)
    try:
        info = value["data"]["parsed"]["info"]
        delegated = info.get("delegatedAmount") or {}
        return TokenAccountState(
            exists=True,
            amount=int(info["tokenAmount"]["amount"]),
            mint=info.get("mint"),
            owner=info.get("owner"),
            delegate=info.get("delegate"),
            delegated_amount=int(delegated.get("amount", "0")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise LedgerRpcError(f"account is not a parsed token account: {exc}") from None


def parse_blockhash(result: Any) -> str:
    value = _value(result)
    if not isinstance(value, dict) or not isinstance(value.get("blockhash"), str):
        raise LedgerRpcError("getLatestBlockhash result has no blockhash")
    return str(value["blockhash"])


def parse_signature_status(result: Any) -> SignatureStatus:
    value = _value(result)
    if not isinstance(value, list) or not value:
        raise LedgerRpcError("getSignatureStatuses returned no entries")
    entry = value[0]
    if entry is None:
        return SignatureStatus(found=False)
    return SignatureStatus(
        found=True,
        confirmation_status=entry.get("confirmationStatus"),
        err=entry.get("err"),
    )


class SolanaRpcClient:
    """Solana JSON-RPC client.

    Args:
        url: Cluster RPC URL.
        transport: Injectable transport. Defaults to HttpxTransport.
        commitment: Commitment level for reads and preflight.
    """

    def __init__(
        self,
        url: str,
        transport: JsonRpcTransport | None = None,
        *,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> None:
        self._endpoint = JsonRpcEndpoint(url, transport)
        self._commitment = commitment

    @property
    def url(self) -> str:
        return self._endpoint.url

    async def get_token_account(self, address: str) -> TokenAccountState:
        result = await self._endpoint.call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        return parse_token_account(result)

    async def get_latest_blockhash(self) -> str:
        result = await self._endpoint.call(
            "getLatestBlockhash", [{"commitment": self._commitment}]
        )
        return parse_blockhash(result)

    async def send_transaction(self, raw_base64: str) -> str:
        result = await self._endpoint.call(
            "sendTransaction",
            [raw_base64, {"encoding": "base64", "preflightCommitment": self._commitment}],
        )
        if not isinstance(result, str):
            raise LedgerRpcError(f"sendTransaction returned {type(result).__name__}")
        return result

    async def get_signature_status(self, signature: str) -> SignatureStatus:
        result = await self._endpoint.call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        return parse_signature_status(result)
