"""Retry policy for external API calls."""
from __future__ import annotations

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)


def _is_retryable(exc: BaseException) -> bool:
    return bool(getattr(exc, "retryable", False))


def retry_policy(max_retries: int = 2, delay: float = 1.0) -> AsyncRetrying:
    """Bounded retry with a fixed delay.

    - max_retries + 1 attempts in total
    - fixed wait between attempts (no exponential growth)
    - only errors flagged ``retryable`` (429, 5xx, timeouts) are retried
    - the last error is re-raised once attempts run out

    Usage:
        async for attempt in retry_policy(2, 1.0):
            with attempt:
                data = await do_call()
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_fixed(delay),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
