"""Telegram notification on successful buys. Best-effort: failures are logged, never raised."""

from __future__ import annotations

import logging

from telegram import Bot

from tweetsniper.models import BuyRecord, MatchEvent

log = logging.getLogger("tweetsniper.telegram")

SOLSCAN_TX = "https://solscan.io/tx/{}"


def format_buy_message(event: MatchEvent, buy: BuyRecord) -> str:
    keyword = f'"{buy.keyword}"' if buy.keyword else "(any post)"
    return (
        "🎯 BUY EXECUTED\n\n"
        f"Account: @{buy.username}\n"
        f"Keyword: {keyword}\n"
        f"Token: {buy.token_ca}\n"
        f"Amount: {buy.buy_amount} SOL\n"
        f"Post: {event.post_text[:200]}\n\n"
        f"Tx: {SOLSCAN_TX.format(buy.tx_id)}"
    )


class TelegramNotifier:
    def __init__(self, bot_token: str, channel_id: str, bot: Bot | None = None):
        self.bot_token = bot_token
        self.channel_id = channel_id
        self._bot = bot

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.channel_id) or self._bot is not None

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self.bot_token)
        return self._bot

    async def send(self, text: str) -> bool:
        if not self.is_configured:
            return False
        try:
            await self.bot.send_message(chat_id=self.channel_id, text=text)
            return True
        except Exception as e:
            log.warning("Telegram send failed: %s", e)
            return False

    async def notify_buy(self, event: MatchEvent, buy: BuyRecord) -> bool:
        return await self.send(format_buy_message(event, buy))
