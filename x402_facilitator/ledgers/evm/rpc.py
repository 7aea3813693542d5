"""
EVM JSON-RPC client.

Thin, typed wrappers over the handful of ``eth_*`` methods the
facilitator needs. Response parsing is pure and lives in module-level
functions so it can be tested against canned responses.

No retry loops. No secrets. JSON-RPC error objects raise LedgerRpcError
with the node's text; transport exceptions propagate unchanged.
"""

from __future__ import annotations

from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from x402_facilitator.errors import LedgerRpcError
from x402_facilitator.ledgers.transport import JsonRpcEndpoint, JsonRpcTransport

BALANCE_OF_SELECTOR = function_signature_to_4byte_selector("balanceOf(address)")
ALLOWANCE_SELECTOR = function_signature_to_4byte_selector("allowance(address,address)")
TRANSFER_FROM_SELECTOR = function_signature_to_4byte_selector(
    "transferFrom(address,address,uint256)"
)


# =====================================================================
# Calldata
# =====================================================================


def encode_balance_of(owner: str) -> str:
    return "0x" + (BALANCE_OF_SELECTOR + abi_encode(["address"], [owner])).hex()


def encode_allowance(owner: str, spender: str) -> str:
    data = ALLOWANCE_SELECTOR + abi_encode(["address", "address"], [owner, spender])
    return "0x" + data.hex()


def encode_transfer_from(payer: str, payee: str, amount: int) -> str:
    """Calldata for ``transferFrom(payer, payee, amount)``.

    The facilitator is the caller (``msg.sender``) and must hold an
    allowance from ``payer``. Funds move payer → payee directly.
    """
    data = TRANSFER_FROM_SELECTOR + abi_encode(
        ["address", "address", "uint256"],
        [to_checksum_address(payer), to_checksum_address(payee), amount],
    )
    return "0x" + data.hex()


# =====================================================================
# Parsing (pure)
# =====================================================================


def parse_quantity(value: Any) -> int:
    """Parse a hex QUANTITY ("0x1a") into an int."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise LedgerRpcError(f"expected hex quantity, got: {value!r}")
    return int(value, 16)


def parse_uint256_return(value: Any) -> int:
    """Decode an ``eth_call`` return value holding a single uint256."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise LedgerRpcError(f"expected hex data, got: {value!r}")
    raw = bytes.fromhex(value[2:])
    if len(raw) < 32:
        raise LedgerRpcError(f"short return data ({len(raw)} bytes); is the asset a token?")
    (decoded,) = abi_decode(["uint256"], raw[:32])
    return int(decoded)


def parse_receipt_status(receipt: dict[str, Any]) -> bool:
    """True if a mined receipt reports success (status 0x1)."""
    return parse_quantity(receipt.get("status", "0x0")) == 1


class EvmRpcClient:
    """EVM JSON-RPC client.

    Args:
        url: Node JSON-RPC URL.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(self, url: str, transport: JsonRpcTransport | None = None) -> None:
        self._endpoint = JsonRpcEndpoint(url, transport)

    @property
    def url(self) -> str:
        return self._endpoint.url

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return parse_quantity(await self._endpoint.call("eth_getBalance", [address, block]))

    async def call(self, to: str, data: str, block: str = "latest") -> str:
        result = await self._endpoint.call("eth_call", [{"to": to, "data": data}, block])
        return str(result)

    async def token_balance_of(self, token: str, owner: str) -> int:
        return parse_uint256_return(await self.call(token, encode_balance_of(owner)))

    async def token_allowance(self, token: str, owner: str, spender: str) -> int:
        return parse_uint256_return(await self.call(token, encode_allowance(owner, spender)))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return parse_quantity(
            await self._endpoint.call("eth_getTransactionCount", [address, block])
        )

    async def gas_price(self) -> int:
        return parse_quantity(await self._endpoint.call("eth_gasPrice", []))

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        return parse_quantity(await self._endpoint.call("eth_estimateGas", [tx]))

    async def send_raw_transaction(self, raw_tx_hex: str) -> str:
        return str(await self._endpoint.call("eth_sendRawTransaction", [raw_tx_hex]))

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        result = await self._endpoint.call("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise LedgerRpcError(f"unexpected receipt shape: {type(result).__name__}")
        return result
