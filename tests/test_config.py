"""Tests for settings loading and monitoring-pair parsing."""

from __future__ import annotations

import pytest
import yaml

from tweetsniper.config import DEFAULT_BUY_AMOUNT, ConfigError, load_settings, parse_monitoring_pairs


class TestParseMonitoringPairs:
    def test_indexed_groups(self):
        pairs = parse_monitoring_pairs({
            "MONITOR_USER1": " @alice ",
            "MONITOR_KEYWORD1": " launch ",
            "MONITOR_CA1": " MINT1 ",
            "MONITOR_BUY_AMOUNT1": "0.05",
            "MONITOR_USER2": "bob",
            "MONITOR_KEYWORD2": "",
        })

        assert [p.handle for p in pairs] == ["alice", "bob"]
        assert pairs[0].trigger_keyword == "launch"
        assert pairs[0].target_asset_id == "MINT1"
        assert pairs[0].purchase_amount == 0.05
        assert pairs[1].any_post
        assert pairs[1].target_asset_id is None

    def test_missing_amount_uses_default(self):
        pairs = parse_monitoring_pairs({"MONITOR_USER1": "alice", "MONITOR_KEYWORD1": "x"})
        assert pairs[0].purchase_amount == DEFAULT_BUY_AMOUNT

    @pytest.mark.parametrize("amount", ["abc", "0", "-1", "nan", "inf"])
    def test_invalid_amount_drops_pair(self, amount):
        pairs = parse_monitoring_pairs({
            "MONITOR_USER1": "alice",
            "MONITOR_KEYWORD1": "x",
            "MONITOR_BUY_AMOUNT1": amount,
            "MONITOR_USER2": "bob",
            "MONITOR_KEYWORD2": "y",
        })
        assert [p.handle for p in pairs] == ["bob"]

    def test_stops_at_missing_user(self):
        pairs = parse_monitoring_pairs({
            "MONITOR_USER1": "alice",
            "MONITOR_KEYWORD1": "x",
            "MONITOR_USER3": "carol",
            "MONITOR_KEYWORD3": "z",
        })
        assert [p.handle for p in pairs] == ["alice"]

    def test_stops_at_undefined_keyword(self):
        pairs = parse_monitoring_pairs({
            "MONITOR_USER1": "alice",
            "MONITOR_USER2": "bob",
            "MONITOR_KEYWORD2": "y",
        })
        assert pairs == []

    def test_duplicates_dropped(self):
        pairs = parse_monitoring_pairs({
            "MONITOR_USER1": "alice",
            "MONITOR_KEYWORD1": "x",
            "MONITOR_USER2": "@alice",
            "MONITOR_KEYWORD2": "x",
            "MONITOR_USER3": "alice",
            "MONITOR_KEYWORD3": "y",
        })
        assert [p.key for p in pairs] == [("alice", "x"), ("alice", "y")]


class TestLoadSettings:
    def test_defaults_without_yaml(self, tmp_path):
        settings = load_settings(env={}, config_path=tmp_path / "missing.yaml")
        assert settings.poll_interval_ms == 500
        assert settings.slippage_bps == 100
        assert settings.tip_lamports == 100_000
        assert settings.deadline_seconds is None
        assert not settings.trading_enabled
        assert not settings.dry_run

    def test_env_overrides_yaml(self, tmp_path):
        config = tmp_path / "sniper.yaml"
        config.write_text(yaml.safe_dump({"poll_interval_ms": 750, "slippage_bps": 200}))

        settings = load_settings(
            env={"SLIPPAGE_TOLERANCE": "300", "LOOP_TIME": "2", "DRY_RUN": "true"},
            config_path=config,
        )

        assert settings.poll_interval_ms == 750
        assert settings.slippage_bps == 300
        assert settings.deadline_seconds == 120
        assert settings.dry_run

    def test_trading_enabled_needs_wallet_and_relay(self, tmp_path):
        env = {"WALLET_PRIVATE_KEY": "k", "ASTRALANE_URL": "https://relay.test"}
        assert not load_settings(env=env, config_path=tmp_path / "none.yaml").trading_enabled
        env["ASTRALANE_API_KEY"] = "a"
        assert load_settings(env=env, config_path=tmp_path / "none.yaml").trading_enabled

    def test_yaml_pairs_used_without_env_pairs(self, tmp_path):
        config = tmp_path / "sniper.yaml"
        config.write_text(yaml.safe_dump({"pairs": [{"handle": "alice", "trigger_keyword": "x"}]}))

        settings = load_settings(env={}, config_path=config)

        assert [p.handle for p in settings.pairs] == ["alice"]

    def test_env_pairs_replace_yaml_pairs(self, tmp_path):
        config = tmp_path / "sniper.yaml"
        config.write_text(yaml.safe_dump({"pairs": [{"handle": "alice", "trigger_keyword": "x"}]}))

        settings = load_settings(
            env={"MONITOR_USER1": "bob", "MONITOR_KEYWORD1": "y"},
            config_path=config,
        )

        assert [p.handle for p in settings.pairs] == ["bob"]

    def test_secrets_not_in_repr(self, tmp_path):
        settings = load_settings(env={"WALLET_PRIVATE_KEY": "super-secret"}, config_path=tmp_path / "none.yaml")
        assert "super-secret" not in repr(settings)

    def test_require_tweet_source(self, tmp_path):
        settings = load_settings(env={}, config_path=tmp_path / "none.yaml")
        with pytest.raises(ConfigError):
            settings.require_tweet_source()

        settings = load_settings(
            env={
                "RAPID_API_KEYS": "k",
                "RAPID_HOST_NAME": "h",
                "MONITOR_USER1": "alice",
                "MONITOR_KEYWORD1": "",
            },
            config_path=tmp_path / "none.yaml",
        )
        settings.require_tweet_source()
