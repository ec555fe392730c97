"""Bounded exponential-backoff retry for upstream HTTP calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

import httpx

log = logging.getLogger(__name__)

T = TypeVar("T")

# Service unavailable, too many requests, bad gateway.
RETRYABLE_STATUSES = frozenset({503, 429, 502})


class RetryPolicy:
    """Retries a call on an allow-list of transient HTTP statuses.

    ``retries`` is the total number of attempts. Before attempt ``n + 1`` the
    policy sleeps ``base_delay * 2**n`` seconds (n counted from 0), so a call
    failing twice with 503 and then succeeding sleeps ``base`` and
    ``2 * base``. Any other failure propagates at once; the last retryable
    failure propagates once attempts are exhausted.
    """

    def __init__(
        self,
        retries: int = 3,
        base_delay: float = 2.0,
        retryable_statuses: Iterable[int] = RETRYABLE_STATUSES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self.retries = retries
        self.base_delay = base_delay
        self.retryable_statuses = frozenset(retryable_statuses)
        self._sleep = sleep

    def is_retryable(self, exc: BaseException) -> bool:
        return (
            isinstance(exc, httpx.HTTPStatusError)
            and exc.response.status_code in self.retryable_statuses
        )

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(self.retries):
            try:
                return await fn()
            except Exception as exc:
                if not self.is_retryable(exc) or attempt == self.retries - 1:
                    raise
                delay = self.base_delay * (2 ** attempt)
                log.info(
                    "Got %d, waiting %.1fs before retry %d/%d",
                    exc.response.status_code, delay, attempt + 1, self.retries - 1,
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")
