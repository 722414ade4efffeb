"""Per-handle baseline: the last post id already evaluated.

Post ids are increasing integers encoded as strings, so every comparison
is numeric ("9" < "10").
"""

from __future__ import annotations


def is_newer(candidate: str, baseline: str) -> bool:
    return int(candidate) > int(baseline)


class BaselineStore:
    def __init__(self) -> None:
        self._last_seen: dict[str, str] = {}

    def get(self, handle: str) -> str | None:
        return self._last_seen.get(handle) or None

    def initialize(self, handle: str, post_id: str) -> bool:
        """Set the baseline only when none exists yet. Returns True if set."""
        if self.get(handle) is not None:
            return False
        self._last_seen[handle] = post_id
        return True

    def advance(self, handle: str, post_id: str) -> bool:
        """Move the baseline forward if ``post_id`` is strictly newer.

        Returns True when the baseline moved, i.e. the post is new and must
        be evaluated. An unset baseline is initialised and returns False:
        the first observed post is never a match target.
        """
        current = self.get(handle)
        if current is None:
            self._last_seen[handle] = post_id
            return False
        if not is_newer(post_id, current):
            return False
        self._last_seen[handle] = post_id
        return True

    def snapshot(self) -> dict[str, str]:
        return dict(self._last_seen)
