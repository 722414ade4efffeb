"""Configuration loader for tweetsniper.

Tuning defaults come from config/sniper.yaml (optional); credentials and
watched pairs come from the environment (.env is loaded by the CLI entry
points). Environment values win over YAML ones.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field

from tweetsniper.models import WatchedPair

log = logging.getLogger("tweetsniper.config")

WORKSPACE = Path(__file__).resolve().parent.parent
CONFIG_PATH = WORKSPACE / "config" / "sniper.yaml"

SOL_MINT = "So11111111111111111111111111111111111111112"  # wSOL
DEFAULT_BUY_AMOUNT = 0.0001  # SOL
DEFAULT_TIP_ACCOUNT = "astra4uejePWneqNaJKuFFA8oonqCE1sqF6b45kDMZm"


class ConfigError(Exception):
    """Process-level configuration is unusable."""


class Settings(BaseModel):
    # TweetSource (RapidAPI)
    rapid_api_key: str = ""
    rapid_host_name: str = ""

    # Solana / Jupiter
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    fallback_rpc_url: str = "https://api.mainnet-beta.solana.com"
    wallet_private_key: str = Field(default="", repr=False)
    jupiter_api_base: str = "https://quote-api.jup.ag/v6"
    slippage_bps: int = 100
    input_mint: str = SOL_MINT

    # Relay
    relay_url: str = ""
    relay_api_key: str = Field(default="", repr=False)
    tip_account: str = DEFAULT_TIP_ACCOUNT
    tip_lamports: int = 100_000

    # Monitoring
    deadline_minutes: float = 0
    poll_interval_ms: int = 500
    fetch_retries: int = 2
    fetch_retry_delay: float = 1.0
    min_buy_amount: float = 0.0
    dry_run: bool = False
    extract_ca_from_post: bool = False

    # Notifier
    telegram_bot_token: str = Field(default="", repr=False)
    telegram_channel_id: str = ""

    # Files
    data_dir: str = "data"
    killswitch_path: str = "killswitch.txt"

    log_level: str = "INFO"

    pairs: list[WatchedPair] = Field(default_factory=list)

    @property
    def trading_enabled(self) -> bool:
        return bool(self.wallet_private_key and self.relay_url and self.relay_api_key)

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_channel_id)

    @property
    def deadline_seconds(self) -> float | None:
        return self.deadline_minutes * 60 if self.deadline_minutes > 0 else None

    def require_tweet_source(self) -> None:
        if not self.rapid_api_key or not self.rapid_host_name:
            raise ConfigError("RAPID_API_KEYS and RAPID_HOST_NAME must be set")
        if not self.pairs:
            raise ConfigError("No monitoring pairs configured (MONITOR_USER1 / MONITOR_KEYWORD1 ...)")


# env var -> Settings field
ENV_FIELDS = {
    "RAPID_API_KEYS": "rapid_api_key",
    "RAPID_HOST_NAME": "rapid_host_name",
    "QUICKNODE_RPC_URL": "rpc_url",
    "FALLBACK_RPC_URL": "fallback_rpc_url",
    "WALLET_PRIVATE_KEY": "wallet_private_key",
    "JUPITER_API_BASE": "jupiter_api_base",
    "SLIPPAGE_TOLERANCE": "slippage_bps",
    "ASTRALANE_URL": "relay_url",
    "ASTRALANE_API_KEY": "relay_api_key",
    "TIP_ACCOUNT": "tip_account",
    "TIP_LAMPORTS": "tip_lamports",
    "LOOP_TIME": "deadline_minutes",
    "POLL_INTERVAL_MS": "poll_interval_ms",
    "FETCH_RETRIES": "fetch_retries",
    "FETCH_RETRY_DELAY": "fetch_retry_delay",
    "MIN_BUY_AMOUNT": "min_buy_amount",
    "DRY_RUN": "dry_run",
    "EXTRACT_CA_FROM_POST": "extract_ca_from_post",
    "TELEGRAM_BOT_TOKEN": "telegram_bot_token",
    "TELEGRAM_CHANNEL_ID": "telegram_channel_id",
    "DATA_DIR": "data_dir",
    "KILLSWITCH_PATH": "killswitch_path",
    "LOG_LEVEL": "log_level",
}


def load_sniper_config(path: Path | None = None) -> dict[str, Any]:
    """Load config/sniper.yaml."""
    path = path or CONFIG_PATH
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text()) or {}


def _parse_amount(raw: str) -> float | None:
    try:
        value = float(raw)
    except ValueError:
        return None
    if value != value or value in (float("inf"), float("-inf")) or value <= 0:
        return None
    return value


def parse_monitoring_pairs(env: Mapping[str, str]) -> list[WatchedPair]:
    """Read MONITOR_USER{n} / MONITOR_KEYWORD{n} / MONITOR_CA{n} / MONITOR_BUY_AMOUNT{n} groups.

    Scanning stops at the first index without a user or without a keyword
    variable (an empty keyword is valid and means "any post").
    """
    pairs: list[WatchedPair] = []
    seen: set[tuple[str, str]] = set()
    index = 1
    while True:
        username = env.get(f"MONITOR_USER{index}")
        if not username:
            break
        keyword = env.get(f"MONITOR_KEYWORD{index}")
        if keyword is None:
            log.info("Stopping pair scan at index %d: keyword undefined", index)
            break

        raw_amount = env.get(f"MONITOR_BUY_AMOUNT{index}", "").strip()
        token_ca = (env.get(f"MONITOR_CA{index}") or "").strip() or None

        if not raw_amount:
            amount = DEFAULT_BUY_AMOUNT
            log.info("No buy amount for pair %d, using default %s SOL", index, amount)
        else:
            parsed = _parse_amount(raw_amount)
            if parsed is None:
                log.warning("Invalid buy amount %r for pair %d, dropping pair", raw_amount, index)
                index += 1
                continue
            amount = parsed

        pair = WatchedPair(
            handle=username.strip().lstrip("@"),
            trigger_keyword=keyword.strip(),
            target_asset_id=token_ca,
            purchase_amount=amount,
        )
        if pair.key in seen:
            log.warning("Duplicate pair %s ignored", pair.describe())
        else:
            seen.add(pair.key)
            pairs.append(pair)
            log.info("Pair %d: %s", index, pair.describe())
        index += 1

    return pairs


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(
    env: Mapping[str, str] | None = None,
    config_path: Path | None = None,
) -> Settings:
    """Build Settings from YAML defaults overlaid with environment values."""
    env = os.environ if env is None else env
    values: dict[str, Any] = dict(load_sniper_config(config_path))

    for env_key, field_name in ENV_FIELDS.items():
        raw = env.get(env_key)
        if raw is None or raw == "":
            continue
        if field_name in ("dry_run", "extract_ca_from_post"):
            values[field_name] = _coerce_bool(raw)
        else:
            values[field_name] = raw

    # Env pairs replace any YAML "pairs" list
    env_pairs = parse_monitoring_pairs(env)
    if env_pairs or "pairs" not in values:
        values["pairs"] = env_pairs
    return Settings(**values)
