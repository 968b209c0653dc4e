"""JSON-RPC client for an Ethereum node.

Implements the EventSource and ContractReader protocols. Node errors are
classified here, once: oversized log queries become RangeTooLargeError,
everything else TransportError. Transient HTTP failures (connection errors,
429 and 5xx gateway responses) are retried with exponential backoff.
"""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import bittensor as bt
import httpx

from sospower.ledger.errors import RangeTooLargeError, TransportError
from sospower.ledger.models import RawLog, normalize_address

from .abi import decode_uint, encode_call

ERROR_CODE_TOO_MANY_LOGS = -32005

# Phrasings used by common providers when a getLogs result set is too big.
KNOWN_TOO_MANY_LOGS = (
    "query returned more than",
    "response size exceeded",
    "log response size exceeded",
    "block range is too wide",
    "range is too large",
    "exceeds max results",
    "query exceeds max block range",
)

_RETRYABLE_STATUS = (429, 502, 503, 504)


def is_range_too_large(code: int | None, message: str) -> bool:
    """Whether a JSON-RPC error means the log query must be narrowed."""
    if code == ERROR_CODE_TOO_MANY_LOGS:
        return True
    msg = message.lower()
    return any(phrase in msg for phrase in KNOWN_TOO_MANY_LOGS)


class RPCClient:
    """Async JSON-RPC client over httpx."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._max_retries = max(1, max_retries)
        self._id = 0

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        """POST with retry on transport errors and retryable status codes."""
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.post(
                    self.rpc_url,
                    json=payload,
                    headers={"content-type": "application/json"},
                )
                if resp.status_code not in _RETRYABLE_STATUS:
                    return resp
                error = f"HTTP {resp.status_code}"
            except httpx.TransportError as e:
                error = str(e) or type(e).__name__

            if attempt == self._max_retries - 1:
                raise TransportError(f"{payload['method']} failed after {self._max_retries} attempts: {error}")
            wait = 2 ** attempt
            bt.logging.warning({"rpc_client": {"method": payload["method"], "retry": attempt, "wait": wait, "error": error}})
            await asyncio.sleep(wait)

    async def call(self, method: str, params: list) -> Any:
        """Issue one JSON-RPC request and return its ``result``."""
        self._id += 1
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        resp = await self._post(payload)

        if resp.status_code == 413:
            raise RangeTooLargeError(f"{method}: HTTP 413 payload too large")
        if resp.status_code != 200:
            raise TransportError(f"{method}: HTTP {resp.status_code} {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"{method}: invalid JSON-RPC response: {resp.text[:200]!r}") from e

        if isinstance(data, dict) and data.get("error"):
            err = data["error"]
            code = err.get("code") if isinstance(err, dict) else None
            message = err.get("message", str(err)) if isinstance(err, dict) else str(err)
            if is_range_too_large(code, message):
                raise RangeTooLargeError(f"{method}: {message}")
            raise TransportError(f"{method}: {message}", code=code)

        if not isinstance(data, dict) or "result" not in data:
            raise TransportError(f"{method}: response has no result")
        return data["result"]

    # -- Chain reads --

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber", []), 16)

    async def get_logs(
        self,
        from_block: int,
        to_block: int,
        address: str,
        topics: Sequence[object],
    ) -> list[RawLog]:
        try:
            logs = await self.call("eth_getLogs", [{
                "fromBlock": hex(from_block),
                "toBlock": hex(to_block),
                "address": normalize_address(address),
                "topics": list(topics),
            }])
        except RangeTooLargeError as e:
            e.from_block, e.to_block = from_block, to_block
            raise
        except TransportError as e:
            e.from_block, e.to_block = from_block, to_block
            raise

        if not isinstance(logs, list):
            raise TransportError("eth_getLogs: result is not a list", from_block=from_block, to_block=to_block)
        return [RawLog.from_rpc(log) for log in logs if not log.get("removed")]

    async def read_uint(
        self,
        address: str,
        method: str,
        block: int,
        args: Sequence[object] = (),
    ) -> int:
        result = await self.call("eth_call", [
            {"to": normalize_address(address), "data": encode_call(method, args)},
            hex(block),
        ])
        try:
            return decode_uint(result)
        except (TypeError, ValueError) as e:
            raise TransportError(f"eth_call {method} on {address} at {block}: {e}") from e


__all__ = ["ERROR_CODE_TOO_MANY_LOGS", "RPCClient", "is_range_too_large"]
