"""Sniper monitor — CLI entry point.

Watches the configured (handle, keyword) pairs and buys on the first
matching post of each.

Usage:
    python3 -m tweetsniper.skills.monitor
    python3 -m tweetsniper.skills.monitor --dry-run --deadline-minutes 30

Exit codes:
    0 = all pairs completed or deadline elapsed
    1 = halted by killswitch, or unusable configuration
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from tweetsniper.alerts.telegram import TelegramNotifier
from tweetsniper.clients.x_api import XClient
from tweetsniper.config import ConfigError, Settings, load_settings
from tweetsniper.execution.pipeline import TradeExecutionPipeline
from tweetsniper.handler import MatchHandler
from tweetsniper.monitor.scheduler import MonitoringScheduler, StopReason
from tweetsniper.signer.wallet import WalletError
from tweetsniper.storage.results import ResultLog
from tweetsniper.storage.user_cache import UserIdCache

log = logging.getLogger("tweetsniper.monitor")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    """stderr logging at LOG_LEVEL, set up before settings load so config parsing is visible."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT, stream=sys.stderr)


def build_pipeline(settings: Settings) -> TradeExecutionPipeline | None:
    """Pipeline for live or dry-run trading. Raises ConfigError on bad wallet or tip settings."""
    if settings.dry_run or settings.trading_enabled:
        try:
            return TradeExecutionPipeline.from_settings(settings)
        except WalletError as e:
            raise ConfigError(str(e)) from e
    log.warning("Trading disabled: WALLET_PRIVATE_KEY / ASTRALANE_URL / ASTRALANE_API_KEY not set")
    return None


async def run_monitor(settings: Settings) -> dict[str, Any]:
    settings.require_tweet_source()

    pipeline = build_pipeline(settings)
    source = XClient(
        settings.rapid_api_key,
        settings.rapid_host_name,
        cache=UserIdCache.in_data_dir(settings.data_dir),
        max_retries=settings.fetch_retries,
        retry_delay=settings.fetch_retry_delay,
    )
    notifier = (
        TelegramNotifier(settings.telegram_bot_token, settings.telegram_channel_id)
        if settings.notifications_enabled
        else None
    )
    handler = MatchHandler(
        ResultLog(settings.data_dir),
        pipeline,
        notifier=notifier,
        extract_ca_from_post=settings.extract_ca_from_post,
    )
    scheduler = MonitoringScheduler(
        settings.pairs,
        source,
        handler,
        tick_interval=settings.poll_interval_ms / 1000,
        deadline=settings.deadline_seconds,
        killswitch_path=settings.killswitch_path,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop, StopReason.STOPPED)
        except NotImplementedError:
            pass

    try:
        await scheduler.start()
        await scheduler.wait()
        await scheduler.drain()
    finally:
        await source.close()
        if pipeline is not None:
            await pipeline.close()

    status = scheduler.status()
    status["trades"] = [t.model_dump() for t in handler.trades]
    return status


def exit_code(stop_reason: str | None) -> int:
    return 1 if stop_reason == StopReason.KILLSWITCH.value else 0


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Tweet sniper — keyword-triggered Solana buys")
    parser.add_argument("--dry-run", action="store_true", help="Quote only, never submit")
    parser.add_argument("--deadline-minutes", type=float, default=None, help="Stop after N minutes (0 = never)")
    parser.add_argument("--config", type=Path, default=None, help="Path to sniper.yaml")
    args = parser.parse_args()
    configure_logging()

    try:
        settings = load_settings(config_path=args.config)
    except ValueError as e:
        print(json.dumps({"status": "CONFIG_ERROR", "error": str(e)}, indent=2))
        sys.exit(1)
    overrides: dict[str, Any] = {}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.deadline_minutes is not None:
        overrides["deadline_minutes"] = args.deadline_minutes
    if overrides:
        settings = settings.model_copy(update=overrides)
    logging.getLogger().setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    try:
        result = asyncio.run(run_monitor(settings))
    except ConfigError as e:
        print(json.dumps({"status": "CONFIG_ERROR", "error": str(e)}, indent=2))
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))
    sys.exit(exit_code(result.get("stop_reason")))


if __name__ == "__main__":
    main()
