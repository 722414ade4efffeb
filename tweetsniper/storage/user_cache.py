"""Handle -> account identifier cache.

Read-through / write-through: an in-memory dict backed by data/user_id.json.
Identifiers never change for a handle, so concurrent writers are fine with
last-writer-wins.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from tweetsniper.models import utc_now_iso
from tweetsniper.utils.file_lock import safe_read_json, safe_update_json

log = logging.getLogger("tweetsniper.user_cache")

CACHE_FILE = "user_id.json"


class UserIdCache:
    def __init__(self, path: Path | None = None):
        self.path = path
        self._memory: dict[str, str] = {}

    @classmethod
    def in_data_dir(cls, data_dir: str | Path) -> UserIdCache:
        return cls(Path(data_dir) / CACHE_FILE)

    def get(self, handle: str) -> str | None:
        if handle in self._memory:
            return self._memory[handle]
        if self.path is None:
            return None
        cache = safe_read_json(self.path, default={})
        entry = cache.get(handle) if isinstance(cache, dict) else None
        user_id = entry.get("userId") if isinstance(entry, dict) else None
        if user_id:
            log.info("Cached user id for @%s: %s (cached %s)", handle, user_id, entry.get("timestamp"))
            self._memory[handle] = str(user_id)
            return str(user_id)
        return None

    def set(self, handle: str, user_id: str) -> None:
        self._memory[handle] = user_id
        if self.path is None:
            return

        def _update(cache: Any) -> dict[str, Any]:
            if not isinstance(cache, dict):
                cache = {}
            cache[handle] = {"userId": user_id, "timestamp": utc_now_iso()}
            return cache

        try:
            safe_update_json(self.path, _update, default={})
        except OSError as e:
            # Memory copy still serves this run
            log.warning("Failed to persist user id cache: %s", e)
