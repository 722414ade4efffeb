"""Shared httpx plumbing for every upstream: RapidAPI, Jupiter, Solana RPC, the relay.

Each call runs under the tenacity policy from utils.retry. Failures surface
as APIError, flagged retryable for 429, 5xx and transport errors only. An
optional body check runs inside the retry loop so upstreams that report
throttling in a 200 body are retried the same way.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx

from tweetsniper.utils.retry import retry_policy


class APIError(Exception):
    """Upstream failure. ``retryable`` drives the retry policy."""

    def __init__(self, message: str, status_code: int = 0, provider: str = "", retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider
        self.retryable = retryable


BodyCheck = Callable[[Any], None]


def classify_status(status: int) -> tuple[str, bool] | None:
    """HTTP status -> (label, retryable), or None when the body should be used.

    429 and 5xx are transient; any other 4xx is the caller's fault.
    """
    if status == 429:
        return "Rate limited", True
    if status >= 500:
        return "Server error", True
    if status >= 400:
        return "Client error", False
    return None


class BaseClient:
    """Base HTTP client with retry and structured errors.

    Usage:
        client = BaseClient(
            base_url="https://api.example.com",
            headers={"x-api-key": "xxx"},
            timeout=10.0,
            max_retries=2,
            retry_delay=1.0,
        )
        data = await client.get("/endpoint", params={"q": "test"})
    """

    def __init__(
        self,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        provider_name: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.provider_name = provider_name
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        check_body: BodyCheck | None = None,
    ) -> Any:
        """GET request with retry."""
        return await self._request("GET", path, params=params, headers=headers, check_body=check_body)

    async def post(
        self,
        path: str,
        json_data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        raise_for_status: bool = True,
    ) -> Any:
        """POST request with retry.

        With ``raise_for_status=False`` the JSON body is returned whatever
        the HTTP status (JSON-RPC endpoints report errors in the body).
        """
        return await self._request(
            "POST", path, json_data=json_data, headers=headers, raise_for_status=raise_for_status
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        raise_for_status: bool = True,
        check_body: BodyCheck | None = None,
    ) -> Any:
        """Execute request under the retry policy."""
        async for attempt in retry_policy(self.max_retries, self.retry_delay):
            with attempt:
                data = await self._send_once(
                    method, path, params, json_data, headers, raise_for_status
                )
                if check_body is not None:
                    check_body(data)
                return data
        raise APIError(f"Request to {self.provider_name} made no attempt", provider=self.provider_name)

    async def _send_once(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        json_data: dict[str, Any] | None,
        headers: dict[str, str] | None,
        raise_for_status: bool,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json_data,
                headers=headers,
            )
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise APIError(
                f"Connection error to {self.provider_name}: {e}",
                provider=self.provider_name,
                retryable=True,
            ) from e

        if raise_for_status:
            failure = classify_status(response.status_code)
            if failure is not None:
                label, retryable = failure
                raise APIError(
                    f"{label} from {self.provider_name}: {response.status_code} - {response.text[:200]}",
                    status_code=response.status_code,
                    provider=self.provider_name,
                    retryable=retryable,
                )

        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Non-JSON response from {self.provider_name}: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
                provider=self.provider_name,
                retryable=False,
            ) from e


class RPCFallbackClient:
    """JSON-RPC client with automatic fallback chain rotation.

    Tries the primary RPC first, falls back to the next endpoint on failure.
    """

    def __init__(
        self,
        endpoints: list[dict[str, Any]],
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._urls = [ep["url"] for ep in endpoints]
        self._clients: list[BaseClient] = []
        for ep in endpoints:
            self._clients.append(
                BaseClient(
                    base_url="",
                    timeout=ep.get("timeout_seconds", 10.0),
                    provider_name=ep.get("provider", "unknown"),
                    max_retries=ep.get("max_retries", 1),  # Quick fail per-provider, fallback handles the rest
                    retry_delay=ep.get("retry_delay", 0.5),
                    transport=transport,
                )
            )

    async def call(self, method: str, params: list[Any]) -> Any:
        """Call a JSON-RPC method on each endpoint in order. Return the first ``result``."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        errors: list[str] = []
        for url, client in zip(self._urls, self._clients):
            try:
                # Absolute URL keeps query-string credentials intact
                data = await client.post(url, json_data=payload)
            except APIError as e:
                errors.append(f"{client.provider_name}: {e}")
                continue
            if not isinstance(data, dict) or "error" in data:
                err = data.get("error") if isinstance(data, dict) else data
                errors.append(f"{client.provider_name}: {str(err)[:200]}")
                continue
            return data.get("result")

        raise APIError(
            f"All RPC endpoints failed for {method}: {'; '.join(errors)}",
            provider="rpc_fallback",
            retryable=False,
        )

    async def close(self) -> None:
        for client in self._clients:
            await client.close()
