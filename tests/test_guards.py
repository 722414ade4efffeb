"""Tests for the killswitch guard, the Telegram notifier and the CLI wiring."""

from __future__ import annotations

import json
import logging
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

from tweetsniper.alerts.telegram import TelegramNotifier, format_buy_message
from tweetsniper.config import ConfigError, Settings
from tweetsniper.guards.killswitch import check_killswitch, is_active
from tweetsniper.models import BuyRecord, MatchEvent, WatchedPair
from tweetsniper.monitor.scheduler import StopReason
from tweetsniper.skills import execute_swap, monitor
from tweetsniper.skills.monitor import build_pipeline, exit_code


@pytest.fixture
def killswitch(tmp_path, monkeypatch):
    """Redirect KILLSWITCH_FILE to tmp for test isolation."""
    test_ks = tmp_path / "killswitch.txt"
    monkeypatch.setattr("tweetsniper.guards.killswitch.KILLSWITCH_FILE", test_ks)
    return test_ks


EVENT = MatchEvent(
    handle="alice",
    trigger_keyword="",
    target_asset_id="MINT",
    purchase_amount=0.01,
    post_text="gm",
    post_id="1",
)
BUY = BuyRecord(username="alice", keyword="", token_ca="MINT", buy_amount=0.01, tx_id="sig")


def _monitor_settings(**overrides) -> Settings:
    return Settings(
        rapid_api_key="test-key",
        rapid_host_name="twitter-api.example.com",
        pairs=[WatchedPair(handle="alice", trigger_keyword="coin")],
        **overrides,
    )


class TestKillswitch:
    def test_clear_when_no_file(self, killswitch):
        result = check_killswitch()
        assert result["status"] == "CLEAR"
        assert not is_active()

    def test_active_when_file_exists(self, killswitch):
        killswitch.write_text("Manual halt for testing")
        result = check_killswitch()
        assert result["status"] == "ACTIVE"
        assert "Manual halt" in result["message"]

    def test_active_with_empty_file(self, killswitch):
        killswitch.write_text("")
        assert check_killswitch()["status"] == "ACTIVE"

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.txt"
        assert not is_active(path)
        path.write_text("stop")
        assert is_active(path)


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_sends_to_channel(self):
        bot = AsyncMock()
        notifier = TelegramNotifier("token", "@channel", bot=bot)

        assert await notifier.notify_buy(EVENT, BUY)

        bot.send_message.assert_awaited_once()
        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == "@channel"
        assert "solscan.io/tx/sig" in kwargs["text"]

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self):
        bot = AsyncMock()
        bot.send_message = AsyncMock(side_effect=RuntimeError("network down"))
        notifier = TelegramNotifier("token", "@channel", bot=bot)

        assert await notifier.notify_buy(EVENT, BUY) is False

    @pytest.mark.asyncio
    async def test_unconfigured_does_nothing(self):
        assert await TelegramNotifier("", "").send("hello") is False

    def test_message_any_post(self):
        assert "(any post)" in format_buy_message(EVENT, BUY)


class TestMonitorWiring:
    def test_exit_codes(self):
        assert exit_code(StopReason.COMPLETED.value) == 0
        assert exit_code(StopReason.DEADLINE.value) == 0
        assert exit_code(StopReason.KILLSWITCH.value) == 1

    def test_no_pipeline_without_wallet(self):
        assert build_pipeline(Settings()) is None

    @pytest.mark.asyncio
    async def test_dry_run_pipeline_without_wallet(self):
        pipeline = build_pipeline(Settings(dry_run=True))
        assert pipeline is not None
        assert pipeline.keypair is None
        await pipeline.close()

    def test_unreadable_wallet_is_config_error(self):
        settings = Settings(
            wallet_private_key="not-a-real-key-but-secret-looking-0OIl",
            relay_url="https://relay.example",
            relay_api_key="k",
        )
        with pytest.raises(ConfigError) as exc:
            build_pipeline(settings)
        assert "secret-looking" not in str(exc.value)

    def test_invalid_tip_account_is_config_error(self):
        with pytest.raises(ConfigError, match="TIP_ACCOUNT"):
            build_pipeline(Settings(dry_run=True, tip_account="not-an-address"))

    @pytest.mark.asyncio
    async def test_config_error_opens_no_tweet_client(self, monkeypatch):
        x_client = MagicMock()
        monkeypatch.setattr(monitor, "XClient", x_client)
        settings = _monitor_settings(tip_account="not-an-address", dry_run=True)

        with pytest.raises(ConfigError):
            await monitor.run_monitor(settings)
        x_client.assert_not_called()

    def test_main_reports_bad_wallet_as_config_error(self, monkeypatch, capsys):
        settings = _monitor_settings(
            wallet_private_key="garbage", relay_url="https://relay.example", relay_api_key="k"
        )
        monkeypatch.setattr(monitor, "load_dotenv", lambda: None)
        monkeypatch.setattr(monitor, "configure_logging", lambda: None)
        monkeypatch.setattr(monitor, "load_settings", lambda config_path=None: settings)
        monkeypatch.setattr(sys, "argv", ["tweetsniper"])

        with pytest.raises(SystemExit) as exc:
            monitor.main()

        assert exc.value.code == 1
        assert json.loads(capsys.readouterr().out)["status"] == "CONFIG_ERROR"

    def test_logging_configured_before_settings_load(self, monkeypatch, capsys):
        order = []

        def load_settings(config_path=None):
            order.append("settings")
            raise ValueError("bad MONITOR_AMOUNT1")

        monkeypatch.setattr(monitor, "load_dotenv", lambda: None)
        monkeypatch.setattr(monitor, "configure_logging", lambda: order.append("logging"))
        monkeypatch.setattr(monitor, "load_settings", load_settings)
        monkeypatch.setattr(sys, "argv", ["tweetsniper"])

        with pytest.raises(SystemExit):
            monitor.main()

        assert order == ["logging", "settings"]

    def test_log_level_from_environment(self, monkeypatch):
        calls = []
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        monitor.configure_logging()

        assert calls[0]["level"] == logging.DEBUG


class TestSwapWiring:
    @pytest.mark.asyncio
    async def test_invalid_tip_account_reported_as_failure(self):
        result = await execute_swap.execute_swap(Settings(dry_run=True, tip_account="nope"), "MINT", 0.01)
        assert result["status"] == "FAILED"
        assert "TIP_ACCOUNT" in result["failure_reason"]

    def test_main_reports_settings_error(self, monkeypatch, capsys):
        def load_settings():
            raise ValueError("Invalid buy amount")

        monkeypatch.setattr(execute_swap, "load_dotenv", lambda: None)
        monkeypatch.setattr(execute_swap, "configure_logging", lambda: None)
        monkeypatch.setattr(execute_swap, "load_settings", load_settings)
        monkeypatch.setattr(sys, "argv", ["tweetsniper-swap", "--token", "MINT", "--amount", "0.01"])

        with pytest.raises(SystemExit) as exc:
            execute_swap.main()

        assert exc.value.code == 1
        assert json.loads(capsys.readouterr().out)["status"] == "CONFIG_ERROR"
