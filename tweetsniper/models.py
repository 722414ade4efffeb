"""Domain models shared by the scheduler, the trade pipeline and the result log."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WatchedPair(BaseModel):
    """A (handle, keyword) monitoring unit, as configured."""

    model_config = ConfigDict(frozen=True)

    handle: str
    trigger_keyword: str = ""
    target_asset_id: str | None = None
    purchase_amount: float = 0.0001

    @property
    def key(self) -> tuple[str, str]:
        return (self.handle, self.trigger_keyword)

    @property
    def any_post(self) -> bool:
        return self.trigger_keyword.strip() == ""

    def describe(self) -> str:
        keyword = "(any post)" if self.any_post else f'"{self.trigger_keyword}"'
        ca = f" CA {self.target_asset_id}" if self.target_asset_id else ""
        return f"@{self.handle} keyword {keyword}{ca} buy {self.purchase_amount} SOL"


class ResolvedPair(BaseModel):
    """WatchedPair plus the account identifier the TweetSource resolved for it."""

    model_config = ConfigDict(frozen=True)

    pair: WatchedPair
    user_id: str

    @property
    def key(self) -> tuple[str, str]:
        return self.pair.key

    @property
    def handle(self) -> str:
        return self.pair.handle


class Post(BaseModel):
    """Latest post of an account."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(pattern=r"^[0-9]+$")
    text: str = ""


class PairState(str, Enum):
    PENDING = "PENDING"
    RESOLVING_ID = "RESOLVING_ID"
    BASELINE_SET = "BASELINE_SET"
    ACTIVE = "ACTIVE"
    MATCH_EVALUATED = "MATCH_EVALUATED"
    EXECUTING = "EXECUTING"
    REMOVED = "REMOVED"


class MatchEvent(BaseModel):
    """A new post satisfied a pair's trigger. Produced once per pair."""

    model_config = ConfigDict(frozen=True)

    handle: str
    trigger_keyword: str
    target_asset_id: str | None
    purchase_amount: float
    post_text: str
    post_id: str
    detected_at: str = Field(default_factory=utc_now_iso)


class TradeStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    DRY_RUN = "DRY_RUN"


class TradeResult(BaseModel):
    """Terminal outcome of one pipeline invocation."""

    model_config = ConfigDict(frozen=True)

    target_asset_id: str
    amount: float
    status: TradeStatus
    transaction_id: str | None = None
    failure_reason: str | None = None
    failed_stage: str | None = None
    out_amount: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)

    @property
    def ok(self) -> bool:
        return self.status == TradeStatus.SUCCESS


class DetectionRecord(BaseModel):
    """One appended entry of the detection log."""

    username: str
    keyword: str
    token_ca: str | None = Field(default=None, alias="tokenCA")
    tweet_text: str = Field(alias="tweetText")
    tweet_id: str = Field(alias="tweetId")
    timestamp: str = Field(default_factory=utc_now_iso)
    detected_at: str = Field(alias="detectedAt")
    purchase_executed: bool | None = Field(default=None, alias="purchaseExecuted")
    purchase_amount: float | None = Field(default=None, alias="purchaseAmount")
    purchase_timestamp: str | None = Field(default=None, alias="purchaseTimestamp")
    buy_tx_id: str | None = Field(default=None, alias="buyTxId")
    purchase_error: str | None = Field(default=None, alias="purchaseError")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_event(cls, event: MatchEvent, token_ca: str | None = None) -> DetectionRecord:
        return cls(
            username=event.handle,
            keyword=event.trigger_keyword,
            token_ca=token_ca if token_ca is not None else event.target_asset_id,
            tweet_text=event.post_text,
            tweet_id=event.post_id,
            detected_at=event.detected_at,
        )

    def with_trade(self, trade: TradeResult) -> DetectionRecord:
        """New record carrying the trade outcome. The original is left untouched."""
        update: dict[str, object] = {
            "token_ca": trade.target_asset_id,
            "timestamp": utc_now_iso(),
            "purchase_executed": trade.ok,
        }
        if trade.ok:
            update.update(
                purchase_amount=trade.amount,
                purchase_timestamp=trade.timestamp,
                buy_tx_id=trade.transaction_id,
            )
        else:
            stage = f"{trade.failed_stage}: " if trade.failed_stage else ""
            update["purchase_error"] = f"{stage}{trade.failure_reason or trade.status.value}"
        return self.model_copy(update=update)

    def with_error(self, reason: str) -> DetectionRecord:
        return self.model_copy(
            update={"timestamp": utc_now_iso(), "purchase_executed": False, "purchase_error": reason}
        )

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)


class BuyRecord(BaseModel):
    """One appended entry of the buy transaction log."""

    username: str
    keyword: str
    token_ca: str = Field(alias="tokenCA")
    buy_amount: float = Field(alias="buyAmount")
    tx_id: str = Field(alias="txId")
    timestamp: str = Field(default_factory=utc_now_iso)

    model_config = ConfigDict(populate_by_name=True)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True)
