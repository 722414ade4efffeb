"""X (Twitter) timeline client via RapidAPI — handle resolution and latest post.

The upstream payload shape varies between plans and over time (timeline
instructions move around, pinned posts sit in their own instruction, some
plans return a flat list). Parsing therefore runs an ordered list of
extraction strategies and stops at the first one that yields something.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable

import httpx

from tweetsniper.clients.base import APIError, BaseClient
from tweetsniper.models import Post
from tweetsniper.storage.user_cache import UserIdCache

log = logging.getLogger("tweetsniper.x_api")

RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "quota")
NUMERIC_ID = re.compile(r"[0-9]+")


def _dig(data: Any, *path: Any) -> Any:
    """Walk dict keys / list indexes, returning None on any miss."""
    cur = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or step >= len(cur):
                return None
        elif not isinstance(cur, dict):
            return None
        cur = cur[step] if isinstance(step, int) else cur.get(step)
        if cur is None:
            return None
    return cur


def _is_numeric_id(value: Any) -> bool:
    return isinstance(value, (str, int)) and NUMERIC_ID.fullmatch(str(value)) is not None


def check_upstream_message(data: Any) -> None:
    """RapidAPI reports failures as ``{"message": "..."}`` with a 200."""
    if not isinstance(data, dict):
        return
    message = data.get("message")
    if not message:
        return
    retryable = any(marker in str(message).lower() for marker in RATE_LIMIT_MARKERS)
    raise APIError(
        f"x_api upstream error: {message}",
        status_code=429 if retryable else 0,
        provider="x_api",
        retryable=retryable,
    )


# ── Identifier resolution strategies ─────────────────────────────────


def _user_id_primary(data: Any) -> str | None:
    return _dig(data, "result", "data", "user", "result", "rest_id")


def _user_id_data_root(data: Any) -> str | None:
    return _dig(data, "data", "user", "result", "rest_id") or _dig(data, "user", "result", "rest_id")


def _user_id_flat(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in ("rest_id", "user_id", "id_str", "id"):
        value = data.get(key)
        if _is_numeric_id(value):
            return str(value)
    return None


USER_ID_STRATEGIES: list[Callable[[Any], str | None]] = [
    _user_id_primary,
    _user_id_data_root,
    _user_id_flat,
]


def extract_user_id(data: Any) -> str | None:
    for strategy in USER_ID_STRATEGIES:
        user_id = strategy(data)
        if user_id and _is_numeric_id(user_id):
            return str(user_id)
    return None


# ── Timeline extraction strategies ───────────────────────────────────


def _post_from_tweet_result(result: Any) -> Post | None:
    if not isinstance(result, dict):
        return None
    # Visibility-wrapped tweets nest the real one
    if "tweet" in result and isinstance(result["tweet"], dict):
        result = result["tweet"]
    legacy = result.get("legacy") or {}
    post_id = legacy.get("id_str") or result.get("rest_id") or legacy.get("id")
    if not _is_numeric_id(post_id):
        return None
    text = (
        _dig(result, "note_tweet", "note_tweet_results", "result", "text")
        or legacy.get("full_text")
        or legacy.get("text")
        or ""
    )
    return Post(id=str(post_id), text=text)


def _post_from_entry(entry: Any) -> Post | None:
    return _post_from_tweet_result(_dig(entry, "content", "itemContent", "tweet_results", "result"))


def _find_instructions(data: Any) -> list[Any]:
    for path in (
        ("result", "timeline", "instructions"),
        ("result", "timeline_v2", "timeline", "instructions"),
        ("data", "user", "result", "timeline_v2", "timeline", "instructions"),
        ("data", "user", "result", "timeline", "timeline", "instructions"),
    ):
        instructions = _dig(data, *path)
        if isinstance(instructions, list):
            return instructions
    return []


def _posts(items: Iterable[Any], convert: Callable[[Any], Post | None]) -> list[Post]:
    return [p for p in (convert(i) for i in items) if p is not None]


def _posts_primary(data: Any) -> list[Post]:
    entries = _dig(data, "result", "timeline", "instructions", 2, "entries") or []
    return _posts(entries, _post_from_entry)


def _posts_any_instruction(data: Any) -> list[Post]:
    posts: list[Post] = []
    for instruction in _find_instructions(data):
        posts.extend(_posts(_dig(instruction, "entries") or [], _post_from_entry))
    return posts


def _posts_modules_and_pinned(data: Any) -> list[Post]:
    posts: list[Post] = []
    for instruction in _find_instructions(data):
        pinned = _dig(instruction, "entry")
        if pinned:
            post = _post_from_entry(pinned)
            if post:
                posts.append(post)
        for entry in _dig(instruction, "entries") or []:
            for item in _dig(entry, "content", "items") or []:
                post = _post_from_tweet_result(
                    _dig(item, "item", "itemContent", "tweet_results", "result")
                )
                if post:
                    posts.append(post)
    return posts


def _posts_flat_timeline(data: Any) -> list[Post]:
    timeline = _dig(data, "timeline") or _dig(data, "tweets") or []
    if not isinstance(timeline, list):
        return []
    posts = []
    for item in timeline:
        if not isinstance(item, dict):
            continue
        post_id = item.get("tweet_id") or item.get("id_str") or item.get("id")
        if _is_numeric_id(post_id):
            posts.append(Post(id=str(post_id), text=item.get("text") or item.get("full_text") or ""))
    return posts


TIMELINE_STRATEGIES: list[Callable[[Any], list[Post]]] = [
    _posts_primary,
    _posts_any_instruction,
    _posts_modules_and_pinned,
    _posts_flat_timeline,
]


def extract_latest_post(data: Any) -> Post | None:
    """Newest post (highest numeric id) from the first strategy that finds any."""
    for strategy in TIMELINE_STRATEGIES:
        posts = strategy(data)
        if posts:
            return max(posts, key=lambda p: int(p.id))
    return None


class XClient:
    """RapidAPI X timeline service: resolve a handle, fetch the latest post."""

    def __init__(
        self,
        api_key: str,
        host_name: str,
        cache: UserIdCache | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cache = cache or UserIdCache()
        self._client = BaseClient(
            base_url=f"https://{host_name}",
            headers={"x-rapidapi-key": api_key, "x-rapidapi-host": host_name},
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            provider_name="x_api",
            transport=transport,
        )

    async def resolve(self, handle: str) -> str:
        """Handle -> numeric account id. Raises APIError when it cannot be resolved."""
        cached = self.cache.get(handle)
        if cached:
            return cached

        log.info("Fetching user id for @%s", handle)
        data = await self._client.get(
            "/user", params={"username": handle}, check_body=check_upstream_message
        )
        user_id = extract_user_id(data)
        if not user_id:
            raise APIError(f"No user id found for @{handle}", provider="x_api")
        self.cache.set(handle, user_id)
        return user_id

    async def latest_post(self, user_id: str) -> Post | None:
        """Latest post of the account, or None when the timeline is empty."""
        data = await self._client.get(
            "/user-tweets",
            params={"user": user_id, "count": 1},
            check_body=check_upstream_message,
        )
        return extract_latest_post(data)

    async def close(self) -> None:
        await self._client.close()
