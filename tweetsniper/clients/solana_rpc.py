"""Solana JSON-RPC client — blockhash and raw account fetches.

Primary endpoint (QuickNode or similar) with a public fallback.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx

from tweetsniper.clients.base import APIError, RPCFallbackClient


class SolanaRPCClient:
    """The two RPC calls the transaction builder needs."""

    def __init__(
        self,
        rpc_url: str,
        fallback_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        endpoints: list[dict[str, Any]] = [
            {"provider": "primary", "url": rpc_url, "timeout_seconds": 10},
        ]
        if fallback_url and fallback_url != rpc_url:
            endpoints.append({"provider": "fallback", "url": fallback_url, "timeout_seconds": 20})
        self._rpc = RPCFallbackClient(endpoints, transport=transport)

    async def get_latest_blockhash(self) -> str:
        result = await self._rpc.call("getLatestBlockhash", [{"commitment": "confirmed"}])
        blockhash = ((result or {}).get("value") or {}).get("blockhash")
        if not blockhash:
            raise APIError("getLatestBlockhash returned no blockhash", provider="rpc")
        return blockhash

    async def get_multiple_accounts(self, addresses: list[str]) -> list[bytes | None]:
        """Raw account data per address, None where the account does not exist."""
        if not addresses:
            return []
        result = await self._rpc.call(
            "getMultipleAccounts",
            [addresses, {"encoding": "base64", "commitment": "confirmed"}],
        )
        values = (result or {}).get("value") or []
        accounts: list[bytes | None] = []
        for i in range(len(addresses)):
            info = values[i] if i < len(values) else None
            data = (info or {}).get("data")
            if not data:
                accounts.append(None)
                continue
            # ["<base64>", "base64"]
            encoded = data[0] if isinstance(data, list) else data
            accounts.append(base64.b64decode(encoded))
        return accounts

    async def close(self) -> None:
        await self._rpc.close()
