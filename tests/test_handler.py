"""Tests for the match handler: recording, buying and notifying."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tweetsniper.handler import NO_TOKEN, TRADING_DISABLED, MatchHandler
from tweetsniper.models import MatchEvent, TradeResult, TradeStatus
from tweetsniper.storage.results import ResultLog

MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def _event(target: str | None = MINT, text: str = "coin launch") -> MatchEvent:
    return MatchEvent(
        handle="alice",
        trigger_keyword="coin",
        target_asset_id=target,
        purchase_amount=0.01,
        post_text=text,
        post_id="101",
    )


def _pipeline(result: TradeResult) -> AsyncMock:
    pipeline = AsyncMock()
    pipeline.execute = AsyncMock(return_value=result)
    return pipeline


SUCCESS = TradeResult(target_asset_id=MINT, amount=0.01, status=TradeStatus.SUCCESS, transaction_id="sig123")
QUOTE_FAILED = TradeResult(
    target_asset_id=MINT,
    amount=0.01,
    status=TradeStatus.FAILED,
    failure_reason="Server error from jupiter: 500",
    failed_stage="quote",
)


class TestMatchHandler:
    @pytest.mark.asyncio
    async def test_success_records_and_notifies(self, tmp_path):
        results = ResultLog(tmp_path)
        notifier = AsyncMock()
        handler = MatchHandler(results, _pipeline(SUCCESS), notifier=notifier)

        trade = await handler(_event())

        assert trade.ok
        detections = results.detections()
        assert len(detections) == 2
        assert detections[0]["purchaseExecuted"] is None
        assert detections[1]["purchaseExecuted"] is True
        assert detections[1]["buyTxId"] == "sig123"
        [buy] = results.buys()
        assert buy["txId"] == "sig123"
        notifier.notify_buy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_quote_failure_still_persists_event(self, tmp_path):
        results = ResultLog(tmp_path)
        notifier = AsyncMock()
        handler = MatchHandler(results, _pipeline(QUOTE_FAILED), notifier=notifier)

        await handler(_event())

        detections = results.detections()
        assert detections[0]["tweetId"] == "101"
        assert detections[-1]["purchaseExecuted"] is False
        assert detections[-1]["purchaseError"].startswith("quote:")
        assert results.buys() == []
        notifier.notify_buy.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_trading_disabled(self, tmp_path):
        results = ResultLog(tmp_path)
        handler = MatchHandler(results, None)

        assert await handler(_event()) is None

        assert results.detections()[-1]["purchaseError"] == TRADING_DISABLED

    @pytest.mark.asyncio
    async def test_no_token_configured(self, tmp_path):
        results = ResultLog(tmp_path)
        pipeline = _pipeline(SUCCESS)
        handler = MatchHandler(results, pipeline)

        await handler(_event(target=None, text=f"CA: {MINT}"))

        pipeline.execute.assert_not_awaited()
        assert results.detections()[-1]["purchaseError"] == NO_TOKEN

    @pytest.mark.asyncio
    async def test_token_extracted_from_post(self, tmp_path):
        results = ResultLog(tmp_path)
        pipeline = _pipeline(SUCCESS)
        handler = MatchHandler(results, pipeline, extract_ca_from_post=True)

        await handler(_event(target=None, text=f"new coin CA: {MINT} lfg"))

        pipeline.execute.assert_awaited_once_with(MINT, 0.01)
        assert results.detections()[0]["tokenCA"] == MINT

    @pytest.mark.asyncio
    async def test_purchase_never_retried(self, tmp_path):
        pipeline = _pipeline(QUOTE_FAILED)
        handler = MatchHandler(ResultLog(tmp_path), pipeline)

        await handler(_event())

        assert pipeline.execute.await_count == 1
