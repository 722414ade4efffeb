"""Append-only result logs: detections and buy transactions."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from tweetsniper.models import BuyRecord, DetectionRecord
from tweetsniper.utils.file_lock import safe_read_json, safe_update_json

log = logging.getLogger("tweetsniper.results")

RESULTS_FILE = "detect_tweet_results.json"
TRANSACTIONS_FILE = "buy_transactions.json"


def _append(path: Path, entry: dict[str, Any]) -> None:
    def _update(current: Any) -> list[Any]:
        items = current if isinstance(current, list) else []
        items.append(entry)
        return items

    safe_update_json(path, _update, default=[])


class ResultLog:
    """JSON-file result sink. Records are appended, never rewritten."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.results_path = self.data_dir / RESULTS_FILE
        self.transactions_path = self.data_dir / TRANSACTIONS_FILE

    def record_detection(self, record: DetectionRecord) -> None:
        try:
            _append(self.results_path, record.dump())
        except OSError as e:
            log.error("Error saving detection for @%s: %s", record.username, e)

    def record_buy(self, record: BuyRecord) -> None:
        try:
            _append(self.transactions_path, record.dump())
            log.info("Buy transaction saved to %s", self.transactions_path)
        except OSError as e:
            log.error("Error saving buy transaction %s: %s", record.tx_id, e)

    def detections(self) -> list[dict[str, Any]]:
        data = safe_read_json(self.results_path, default=[])
        return data if isinstance(data, list) else []

    def buys(self) -> list[dict[str, Any]]:
        data = safe_read_json(self.transactions_path, default=[])
        return data if isinstance(data, list) else []
