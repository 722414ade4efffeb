"""Per-provider rate limiter with sliding window tracking."""
from __future__ import annotations

import asyncio
import time
from collections import defaultdict


class RateLimiter:
    """Per-provider rate limiter with sliding window tracking.

    Enforces a minimum delay between consecutive calls to the same
    provider and keeps a short history for call counting.
    """

    def __init__(self, history_sec: float = 3600.0):
        # provider_name -> list of timestamps
        self._call_history: dict[str, list[float]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._history_sec = history_sec

    async def wait_if_needed(self, provider: str, min_interval_sec: float) -> float:
        """Wait if needed to respect minimum interval between calls.

        Args:
            provider: Provider name (e.g., 'x_api')
            min_interval_sec: Minimum seconds between calls

        Returns:
            Seconds actually slept.
        """
        waited = 0.0
        async with self._locks[provider]:
            now = time.monotonic()
            cutoff = now - self._history_sec
            history = [t for t in self._call_history[provider] if t > cutoff]

            if history:
                time_since = now - history[-1]
                if time_since < min_interval_sec:
                    waited = min_interval_sec - time_since
                    await asyncio.sleep(waited)
                    now = time.monotonic()

            history.append(now)
            self._call_history[provider] = history
        return waited

    def get_call_count(self, provider: str, window_sec: float = 60.0) -> int:
        """Get number of calls made in the last N seconds."""
        cutoff = time.monotonic() - window_sec
        history = self._call_history.get(provider, [])
        return len([t for t in history if t > cutoff])
