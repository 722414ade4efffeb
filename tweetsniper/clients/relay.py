"""Relay client — expedited, MEV-protected transaction submission.

Submits a signed, tipped transaction through the relay's JSON-RPC
``sendTransaction``. The relay reports failures in the body, so the HTTP
status is ignored and a submission is never resent.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from tweetsniper.clients.base import APIError, BaseClient


@dataclass(frozen=True)
class RelayResponse:
    result: str | None = None
    error: Any = None

    @property
    def ok(self) -> bool:
        return bool(self.result) and self.error is None

    def describe_error(self) -> str:
        if self.error is not None:
            if isinstance(self.error, dict):
                return str(self.error.get("message") or self.error)[:200]
            return str(self.error)[:200]
        return "relay returned no transaction id"


class RelayClient:
    """Astralane-style relay endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self._client = BaseClient(
            base_url="",
            headers={"Content-Type": "application/json", "api_key": api_key},
            timeout=timeout,
            max_retries=0,  # a resend could double-spend
            provider_name="relay",
            transport=transport,
        )

    async def send_transaction(self, encoded_tx: str, mev_protect: bool = True) -> RelayResponse:
        """Submit a base64 transaction.

        Args:
            encoded_tx: base64-encoded signed versioned transaction.
            mev_protect: relay-side front-running protection flag.

        Raises:
            APIError: transport failure or a non-JSON body.
        """
        data = await self._client.post(
            self.url,
            json_data={
                "jsonrpc": "2.0",
                "id": 1,
                "method": "sendTransaction",
                "params": [
                    encoded_tx,
                    {"encoding": "base64", "skipPreflight": True},
                    mev_protect,
                ],
            },
            raise_for_status=False,
        )
        if not isinstance(data, dict):
            raise APIError(f"Unexpected relay payload: {str(data)[:200]}", provider="relay")
        result = data.get("result")
        return RelayResponse(result=str(result) if result else None, error=data.get("error"))

    async def close(self) -> None:
        await self._client.close()
