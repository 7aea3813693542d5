"""
JSON-RPC plumbing shared by the EVM and Solana clients.

``JsonRpcTransport`` is the seam between RPC clients and the network:
clients build request envelopes and parse results, a transport only
moves JSON. Tests plug in a fake that answers from a table.

Implementations:
    - HttpxTransport: POST over httpx, bounded timeout, optional shared
      connection pool.
    - FakeTransport (tests only).

A slow node raises ``httpx.TimeoutException``; nothing here retries.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from x402_facilitator.errors import LedgerRpcError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Moves one JSON-RPC envelope to a node and back."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST ``payload`` to ``url`` and return the decoded response body.

        Raises:
            Exception: Whatever the HTTP stack raises (refused, timed out,
                non-2xx). The settlement executor classifies these.
        """
        ...


class HttpxTransport:
    """Transport backed by ``httpx.AsyncClient``.

    Args:
        timeout: Seconds allowed for each of connect, read, write and
            pool acquisition.
        client: Optional long-lived client to reuse across calls. When
            omitted, each call opens and closes its own client.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client

    @property
    def timeout(self) -> float:
        return self._timeout

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self._client is not None:
            return await self._post(self._client, url, payload)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._post(client, url, payload)

    async def _post(
        self, client: httpx.AsyncClient, url: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        response = await client.post(url, json=payload, headers=_JSON_HEADERS, timeout=self._timeout)
        response.raise_for_status()
        body: dict[str, Any] = response.json()
        return body


class JsonRpcEndpoint:
    """One node URL plus a transport; builds JSON-RPC 2.0 envelopes.

    ``call`` returns the ``result`` member or raises LedgerRpcError when
    the node answers with ``error``. Transport exceptions are not
    caught here.
    """

    def __init__(self, url: str, transport: JsonRpcTransport | None = None) -> None:
        self._url = url
        self._transport: JsonRpcTransport = transport or HttpxTransport()
        self._ids = itertools.count(1)

    @property
    def url(self) -> str:
        return self._url

    async def call(self, method: str, params: list[Any]) -> Any:
        request_id = next(self._ids)
        envelope = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        logger.debug("rpc #%d %s -> %s", request_id, method, self._url)
        return unwrap_response(await self._transport.post_json(self._url, envelope))


def unwrap_response(response: dict[str, Any]) -> Any:
    """Return ``result`` from a JSON-RPC response or raise LedgerRpcError."""
    error = response.get("error")
    if error is not None:
        if isinstance(error, dict):
            message = str(error.get("message") or "unknown rpc error")
            code = error.get("code")
            raise LedgerRpcError(message, code if isinstance(code, int) else None)
        raise LedgerRpcError(str(error))
    if "result" not in response:
        raise LedgerRpcError("response has neither result nor error")
    return response["result"]
