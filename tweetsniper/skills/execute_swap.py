"""Manual buy — CLI entry point.

Runs the trade execution pipeline once, outside the monitor. Useful to
check wallet, relay and Jupiter wiring before leaving the sniper running.

Usage:
    python3 -m tweetsniper.skills.execute_swap --token <MINT> --amount <SOL>
    python3 -m tweetsniper.skills.execute_swap --token <MINT> --amount <SOL> --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from tweetsniper.config import ConfigError, Settings, load_settings
from tweetsniper.execution.pipeline import TradeExecutionPipeline
from tweetsniper.models import TradeStatus
from tweetsniper.signer.wallet import WalletError
from tweetsniper.skills.monitor import configure_logging


async def execute_swap(settings: Settings, token_mint: str, amount: float) -> dict[str, Any]:
    try:
        pipeline = TradeExecutionPipeline.from_settings(settings)
    except (WalletError, ConfigError) as e:
        return {"status": TradeStatus.FAILED.value, "target_asset_id": token_mint, "failure_reason": str(e)}
    try:
        result = await pipeline.execute(token_mint, amount)
    finally:
        await pipeline.close()
    return result.model_dump(mode="json")


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Tweet sniper — single Jupiter buy through the relay")
    parser.add_argument("--token", required=True, help="Token mint address")
    parser.add_argument("--amount", required=True, help="Amount of SOL to spend")
    parser.add_argument("--dry-run", action="store_true", help="Quote only")
    parser.add_argument("--slippage", type=int, default=None, help="Max slippage in bps (default from config)")
    args = parser.parse_args()
    configure_logging()

    try:
        settings = load_settings()
    except ValueError as e:
        print(json.dumps({"status": "CONFIG_ERROR", "error": str(e)}, indent=2))
        sys.exit(1)
    overrides: dict[str, Any] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.slippage is not None:
        overrides["slippage_bps"] = args.slippage
    if overrides:
        settings = settings.model_copy(update=overrides)
    logging.getLogger().setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    result = asyncio.run(execute_swap(settings, args.token, args.amount))
    print(json.dumps(result, indent=2))
    sys.exit(0 if result["status"] in (TradeStatus.SUCCESS.value, TradeStatus.DRY_RUN.value) else 1)


if __name__ == "__main__":
    main()
