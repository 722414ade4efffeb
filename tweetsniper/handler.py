"""Match handler — glue between a MatchEvent, the pipeline, the result log and the notifier.

Every stage appends a record; nothing is rewritten. The detection is
persisted before any purchase is attempted, so a crash mid-buy still leaves
a trace of the match.
"""

from __future__ import annotations

import logging

from tweetsniper.alerts.telegram import TelegramNotifier
from tweetsniper.execution.pipeline import TradeExecutionPipeline
from tweetsniper.models import BuyRecord, DetectionRecord, MatchEvent, TradeResult
from tweetsniper.monitor.matcher import extract_token_address
from tweetsniper.storage.results import ResultLog

log = logging.getLogger("tweetsniper.handler")

TRADING_DISABLED = "trading disabled"
NO_TOKEN = "no token address configured or found in post"


class MatchHandler:
    def __init__(
        self,
        results: ResultLog,
        pipeline: TradeExecutionPipeline | None,
        notifier: TelegramNotifier | None = None,
        extract_ca_from_post: bool = False,
    ):
        self.results = results
        self.pipeline = pipeline
        self.notifier = notifier
        self.extract_ca_from_post = extract_ca_from_post
        self.trades: list[TradeResult] = []

    def target_for(self, event: MatchEvent) -> str | None:
        if event.target_asset_id:
            return event.target_asset_id
        if self.extract_ca_from_post:
            return extract_token_address(event.post_text)
        return None

    async def __call__(self, event: MatchEvent) -> TradeResult | None:
        target = self.target_for(event)
        detection = DetectionRecord.from_event(event, token_ca=target)
        self.results.record_detection(detection)

        if not target:
            log.warning("Match on @%s has no token to buy", event.handle)
            self.results.record_detection(detection.with_error(NO_TOKEN))
            return None
        if self.pipeline is None:
            log.warning("Match on @%s recorded, %s", event.handle, TRADING_DISABLED)
            self.results.record_detection(detection.with_error(TRADING_DISABLED))
            return None

        trade = await self.pipeline.execute(target, event.purchase_amount)
        self.trades.append(trade)
        self.results.record_detection(detection.with_trade(trade))

        if trade.ok:
            buy = BuyRecord(
                username=event.handle,
                keyword=event.trigger_keyword,
                token_ca=target,
                buy_amount=trade.amount,
                tx_id=trade.transaction_id,
            )
            self.results.record_buy(buy)
            if self.notifier is not None:
                await self.notifier.notify_buy(event, buy)
        return trade
