"""Tests for the relay client, the Solana RPC client and its fallback chain."""

from __future__ import annotations

import base64
import json

import httpx
import pytest

from tests.mocks.mock_rpc import (
    BLOCKHASH,
    LATEST_BLOCKHASH,
    MULTIPLE_ACCOUNTS_MISSING,
    RELAY_ERROR,
    RELAY_OK,
    RPC_ERROR,
    TX_SIGNATURE,
)
from tweetsniper.clients.base import APIError
from tweetsniper.clients.relay import RelayClient
from tweetsniper.clients.solana_rpc import SolanaRPCClient

PRIMARY = "https://primary.test/?api-key=secret"
FALLBACK = "https://fallback.test/"


class TestRelayClient:
    @pytest.mark.asyncio
    async def test_payload_and_header(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=RELAY_OK)

        relay = RelayClient("https://relay.test/iris", "relay-key", transport=httpx.MockTransport(handler))
        response = await relay.send_transaction("AQID")
        await relay.close()

        assert response.ok
        assert response.result == TX_SIGNATURE
        assert str(seen[0].url) == "https://relay.test/iris"
        assert seen[0].headers["api_key"] == "relay-key"
        assert json.loads(seen[0].content)["params"] == [
            "AQID",
            {"encoding": "base64", "skipPreflight": True},
            True,
        ]

    @pytest.mark.asyncio
    async def test_error_body_on_200(self):
        relay = RelayClient(
            "https://relay.test/iris",
            "k",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=RELAY_ERROR)),
        )
        response = await relay.send_transaction("AQID")
        await relay.close()

        assert not response.ok
        assert "insufficient funds" in response.describe_error()

    @pytest.mark.asyncio
    async def test_empty_result_is_not_ok(self):
        relay = RelayClient(
            "https://relay.test/iris",
            "k",
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"jsonrpc": "2.0", "result": ""})),
        )
        response = await relay.send_transaction("AQID")
        await relay.close()

        assert not response.ok
        assert response.describe_error() == "relay returned no transaction id"

    @pytest.mark.asyncio
    async def test_connection_error_sent_once(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        relay = RelayClient("https://relay.test/iris", "k", transport=httpx.MockTransport(handler))
        with pytest.raises(APIError):
            await relay.send_transaction("AQID")
        await relay.close()

        assert len(calls) == 1


class TestSolanaRPCClient:
    @pytest.mark.asyncio
    async def test_blockhash_from_primary(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(200, json=LATEST_BLOCKHASH)

        rpc = SolanaRPCClient(PRIMARY, FALLBACK, transport=httpx.MockTransport(handler))
        assert await rpc.get_latest_blockhash() == BLOCKHASH
        await rpc.close()

        assert hosts == ["primary.test"]

    @pytest.mark.asyncio
    async def test_query_string_credentials_kept(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=LATEST_BLOCKHASH)

        rpc = SolanaRPCClient(PRIMARY, transport=httpx.MockTransport(handler))
        await rpc.get_latest_blockhash()
        await rpc.close()

        assert seen[0].url.params["api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_falls_back_on_rpc_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "primary.test":
                return httpx.Response(200, json=RPC_ERROR)
            return httpx.Response(200, json=LATEST_BLOCKHASH)

        rpc = SolanaRPCClient(PRIMARY, FALLBACK, transport=httpx.MockTransport(handler))
        assert await rpc.get_latest_blockhash() == BLOCKHASH
        await rpc.close()

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self):
        rpc = SolanaRPCClient(
            PRIMARY,
            FALLBACK,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=RPC_ERROR)),
        )
        with pytest.raises(APIError) as exc:
            await rpc.get_latest_blockhash()
        await rpc.close()

        assert exc.value.provider == "rpc_fallback"

    @pytest.mark.asyncio
    async def test_multiple_accounts(self):
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "result": {
                "value": [
                    {"data": [base64.b64encode(b"table-bytes").decode(), "base64"], "owner": "x"},
                    None,
                ]
            },
        }
        rpc = SolanaRPCClient(PRIMARY, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload)))
        accounts = await rpc.get_multiple_accounts(["a", "b"])
        await rpc.close()

        assert accounts == [b"table-bytes", None]

    @pytest.mark.asyncio
    async def test_missing_account(self):
        rpc = SolanaRPCClient(
            PRIMARY,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=MULTIPLE_ACCOUNTS_MISSING)),
        )
        assert await rpc.get_multiple_accounts(["a"]) == [None]
        await rpc.close()
