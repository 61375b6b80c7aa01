"""Minimal async JSON-RPC client for an EVM node."""

from __future__ import annotations

import itertools
import logging
import time
from typing import Any

import httpx

from pyra.core.errors import ProviderUnavailable

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """Thin wrapper around ``httpx.AsyncClient`` speaking Ethereum JSON-RPC.

    Transport failures, HTTP errors and JSON-RPC ``error`` objects are all
    surfaced as :class:`ProviderUnavailable` so callers have exactly one
    failure type to degrade on.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        start = time.perf_counter()
        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderUnavailable("rpc", f"{method} failed: {exc}") from exc
        finally:
            logger.debug(
                "RPC %s completed in %.0fms", method, (time.perf_counter() - start) * 1000
            )

        if "error" in data and data["error"]:
            error = data["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ProviderUnavailable("rpc", f"{method} returned error: {message}")
        return data.get("result")

    # ── Convenience wrappers ─────────────────────────────────────────────────

    async def get_code(self, address: str) -> str:
        return await self.call("eth_getCode", [address, "latest"]) or "0x"

    async def get_balance(self, address: str) -> int:
        return int(await self.call("eth_getBalance", [address, "latest"]) or "0x0", 16)

    async def chain_id(self) -> int:
        return int(await self.call("eth_chainId"), 16)

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber"), 16)

    async def eth_call(self, to: str, data: str) -> str:
        return await self.call("eth_call", [{"to": to, "data": data}, "latest"]) or "0x"

    async def send_transaction(self, tx: dict[str, str]) -> str:
        return await self.call("eth_sendTransaction", [tx])

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
