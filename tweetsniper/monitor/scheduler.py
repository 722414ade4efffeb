"""Monitoring Scheduler — round-robin polling of watched pairs.

Lifecycle per pair:
    PENDING -> RESOLVING_ID -> (fail -> REMOVED | ok -> BASELINE_SET) -> ACTIVE
    ACTIVE -> (new post) MATCH_EVALUATED -> (no match -> ACTIVE | match -> EXECUTING -> REMOVED)

One active pair is visited per tick and exactly one fetch is in flight at a
time; spacing between fetches is enforced by the rate limiter. A matched
pair leaves the active set before its handler task is spawned, so a pair
yields at most one MatchEvent no matter how often it is re-polled.

Termination (empty active set, stop(), deadline, killswitch) resolves a
completion signal; the driver awaits wait() and then drain().
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Protocol

from tweetsniper.clients.base import APIError
from tweetsniper.guards.killswitch import is_active as killswitch_active
from tweetsniper.models import MatchEvent, PairState, Post, ResolvedPair, WatchedPair
from tweetsniper.monitor.baseline import BaselineStore
from tweetsniper.monitor.matcher import match_reason, matches
from tweetsniper.utils.rate_limiter import RateLimiter

log = logging.getLogger("tweetsniper.scheduler")

PROVIDER = "x_api"


class TweetSource(Protocol):
    async def resolve(self, handle: str) -> str: ...

    async def latest_post(self, user_id: str) -> Post | None: ...


MatchHandler = Callable[[MatchEvent], Awaitable[Any]]


class StopReason(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    DEADLINE = "deadline"
    KILLSWITCH = "killswitch"


def _label(key: tuple[str, str]) -> str:
    handle, keyword = key
    return f"@{handle}:{keyword}" if keyword else f"@{handle}:*"


class MonitoringScheduler:
    def __init__(
        self,
        pairs: Iterable[WatchedPair],
        source: TweetSource,
        on_match: MatchHandler,
        tick_interval: float = 0.5,
        deadline: float | None = None,
        killswitch_path: str | Path | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.pairs = list(pairs)
        self.source = source
        self.on_match = on_match
        self.tick_interval = tick_interval
        self.deadline = deadline
        self.killswitch_path = killswitch_path
        self.rate_limiter = rate_limiter or RateLimiter()

        self.baselines = BaselineStore()
        self.states: dict[tuple[str, str], PairState] = {p.key: PairState.PENDING for p in self.pairs}
        self.events: list[MatchEvent] = []
        self.stop_reason: StopReason | None = None

        self._active: list[ResolvedPair] = []
        self._cursor = 0
        self._fetches = 0
        self._tasks: set[asyncio.Task] = set()
        self._loop_task: asyncio.Task | None = None
        self._deadline_handle: asyncio.TimerHandle | None = None
        self._done = asyncio.Event()
        self._started_at: float | None = None

    # ── Public surface ───────────────────────────────────────────────

    @property
    def stopped(self) -> bool:
        return self._done.is_set()

    @property
    def active_pairs(self) -> list[ResolvedPair]:
        return list(self._active)

    async def start(self) -> None:
        """Resolve every pair, record baselines, then poll in the background."""
        if self._started_at is not None:
            raise RuntimeError("scheduler already started")
        self._started_at = time.monotonic()

        if self.deadline:
            loop = asyncio.get_running_loop()
            self._deadline_handle = loop.call_later(self.deadline, self.stop, StopReason.DEADLINE)
            log.info("Deadline set: %.0fs", self.deadline)

        await self.prepare()
        if self.stopped:
            return
        if not self._active:
            log.warning("No pair could be resolved, nothing to monitor")
            self.stop(StopReason.COMPLETED)
            return

        log.info("Monitoring %d pair(s) every %.0fms", len(self._active), self.tick_interval * 1000)
        self._loop_task = asyncio.create_task(self._run(), name="tweetsniper-scheduler")

    async def prepare(self) -> None:
        """Resolve handles sequentially and take an initial baseline per handle."""
        for pair in self.pairs:
            if self.stopped:
                return
            self.states[pair.key] = PairState.RESOLVING_ID
            await self.rate_limiter.wait_if_needed(PROVIDER, self.tick_interval)
            try:
                user_id = await self.source.resolve(pair.handle)
            except APIError as e:
                log.error("Could not resolve @%s, dropping %s: %s", pair.handle, pair.describe(), e)
                self.states[pair.key] = PairState.REMOVED
                continue
            if self.stopped:
                self.states[pair.key] = PairState.REMOVED
                return

            resolved = ResolvedPair(pair=pair, user_id=user_id)
            if self.baselines.get(pair.handle) is None:
                post = await self._fetch(resolved)
                if self.stopped:
                    self.states[pair.key] = PairState.REMOVED
                    return
                if post is not None:
                    self.baselines.initialize(pair.handle, post.id)
                    log.info("Baseline for @%s: %s", pair.handle, post.id)
                else:
                    log.info("No baseline for @%s yet, first observed post will set it", pair.handle)
            self.states[pair.key] = PairState.BASELINE_SET
            self._active.append(resolved)
            self.states[pair.key] = PairState.ACTIVE

    async def tick(self) -> list[MatchEvent]:
        """Visit the next active pair once. Returns the events it produced."""
        if not self._active or self.stopped:
            return []
        self._cursor %= len(self._active)
        current = self._active[self._cursor]
        self._cursor += 1

        post = await self._fetch(current)
        if post is None or self.stopped:
            return []

        handle = current.handle
        if self.baselines.get(handle) is None:
            self.baselines.initialize(handle, post.id)
            log.info("Baseline for @%s: %s", handle, post.id)
            return []
        if not self.baselines.advance(handle, post.id):
            return []

        log.info("New post on @%s (%s): %s", handle, post.id, post.text[:120])
        fired: list[MatchEvent] = []
        for resolved in [r for r in self._active if r.handle == handle]:
            self.states[resolved.key] = PairState.MATCH_EVALUATED
            if matches(post.text, resolved.pair.trigger_keyword):
                fired.append(self._fire(resolved, post))
            else:
                self.states[resolved.key] = PairState.ACTIVE

        if not self._active:
            self.stop(StopReason.COMPLETED)
        return fired

    def stop(self, reason: StopReason = StopReason.STOPPED) -> None:
        """Halt polling and resolve the completion signal. Idempotent."""
        if self.stopped:
            return
        self.stop_reason = reason
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
            self._deadline_handle = None
        for resolved in self._active:
            self.states[resolved.key] = PairState.REMOVED
        self._active.clear()

        task = self._loop_task
        self._loop_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        self._done.set()
        log.info("Scheduler stopped: %s", reason.value)

    async def wait(self) -> StopReason | None:
        await self._done.wait()
        return self.stop_reason

    async def drain(self) -> None:
        """Await in-flight match handlers so their results are recorded."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def status(self) -> dict[str, Any]:
        elapsed = time.monotonic() - self._started_at if self._started_at is not None else 0.0
        return {
            "running": self._started_at is not None and not self.stopped,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
            "elapsed_sec": round(elapsed, 1),
            "fetches": self._fetches,
            "fetches_last_minute": self.rate_limiter.get_call_count(PROVIDER),
            "active": [r.pair.describe() for r in self._active],
            "pairs": {_label(k): s.value for k, s in self.states.items()},
            "baselines": self.baselines.snapshot(),
            "matches": [e.model_dump() for e in self.events],
            "in_flight": len(self._tasks),
        }

    # ── Internals ────────────────────────────────────────────────────

    async def _run(self) -> None:
        while not self.stopped:
            if self.killswitch_path is not None and killswitch_active(self.killswitch_path):
                log.warning("Killswitch file present, halting")
                self.stop(StopReason.KILLSWITCH)
                break
            try:
                await self.tick()
            except Exception:
                log.exception("Tick failed")
            await asyncio.sleep(0)

    async def _fetch(self, resolved: ResolvedPair) -> Post | None:
        await self.rate_limiter.wait_if_needed(PROVIDER, self.tick_interval)
        self._fetches += 1
        try:
            return await self.source.latest_post(resolved.user_id)
        except APIError as e:
            log.warning("No data for @%s this cycle: %s", resolved.handle, e)
            return None
        except ValueError as e:
            log.warning("Malformed timeline for @%s this cycle: %s", resolved.handle, e)
            return None

    def _fire(self, resolved: ResolvedPair, post: Post) -> MatchEvent:
        self._remove(resolved)
        self.states[resolved.key] = PairState.EXECUTING

        pair = resolved.pair
        event = MatchEvent(
            handle=pair.handle,
            trigger_keyword=pair.trigger_keyword,
            target_asset_id=pair.target_asset_id,
            purchase_amount=pair.purchase_amount,
            post_text=post.text,
            post_id=post.id,
        )
        self.events.append(event)
        log.info("MATCH %s: post %s %s", pair.describe(), post.id, match_reason(pair.trigger_keyword))

        task = asyncio.create_task(self._handle(resolved.key, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return event

    async def _handle(self, key: tuple[str, str], event: MatchEvent) -> None:
        try:
            await self.on_match(event)
        except Exception:
            log.exception("Match handler failed for @%s", event.handle)
        finally:
            self.states[key] = PairState.REMOVED

    def _remove(self, resolved: ResolvedPair) -> None:
        index = self._active.index(resolved)
        del self._active[index]
        if index < self._cursor:
            self._cursor -= 1
