"""Minimum-interval rate limiter shared by every request of a fetcher."""

import asyncio
import time
from typing import Awaitable, Callable, Optional


class IntervalRateLimiter:
    """Serializes requests so that at least ``interval_ms`` separates them.

    The first request goes out immediately. Every later acquire (retries
    included) sleeps for whatever remains of the interval since the
    previous one. A single lock means concurrent callers queue up, so the
    effective request concurrency is bounded by the interval.
    """

    def __init__(
        self,
        interval_ms: int,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the limiter.

        Args:
            interval_ms: Minimum milliseconds between two requests
            sleep: Awaitable sleep (defaults to asyncio.sleep)
            clock: Monotonic clock in seconds (defaults to time.monotonic)
        """
        self.interval = interval_ms / 1000.0
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        self._last_request: Optional[float] = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next request is allowed, then claim the slot."""
        async with self._lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self.interval:
                    await self._sleep(self.interval - elapsed)
            self._last_request = self._clock()
