"""Jupiter API client — swap quotes and swap instructions.

Jupiter is the DEX aggregator; it prices the buy and hands back the
unsigned instruction set the transaction builder assembles.
"""

from __future__ import annotations

from typing import Any

import httpx

from tweetsniper.clients.base import BaseClient


class JupiterClient:
    """Jupiter v6 API: quotes, swap instructions."""

    def __init__(
        self,
        base_url: str = "https://quote-api.jup.ag/v6",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = BaseClient(
            base_url=base_url,
            timeout=timeout,
            max_retries=1,
            retry_delay=0.5,
            provider_name="jupiter",
            transport=transport,
        )

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 100,
    ) -> dict[str, Any]:
        """Get swap quote with best route.

        Args:
            input_mint: Token mint to sell
            output_mint: Token mint to buy
            amount: Amount in smallest unit (lamports for SOL)
            slippage_bps: Max slippage in basis points (100 = 1%)
        """
        return await self._client.get(
            "/quote",
            params={
                "inputMint": input_mint,
                "outputMint": output_mint,
                "amount": str(amount),
                "slippageBps": slippage_bps,
            },
        )

    async def get_swap_instructions(
        self,
        quote_response: dict[str, Any],
        user_public_key: str,
    ) -> dict[str, Any]:
        """Get the unsigned instruction set for a quote.

        Response carries computeBudgetInstructions, setupInstructions,
        swapInstruction, cleanupInstruction and addressLookupTableAddresses.
        """
        return await self._client.post(
            "/swap-instructions",
            json_data={
                "quoteResponse": quote_response,
                "userPublicKey": user_public_key,
                "wrapAndUnwrapSol": True,
            },
        )

    async def close(self) -> None:
        await self._client.close()
