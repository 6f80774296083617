"""
Token bucket rate limiter shared by every crawl task of a run.
"""

import asyncio
import time
from typing import Optional

from webrollup.core.base import ConfigurationError, RateLimiterError
from webrollup.core.logging import get_logger


class TokenBucketRateLimiter:
    """
    Bounds fetch-start frequency to `rate` per second with bursts of up to
    `burst` requests.

    acquire() reserves a token immediately (the balance may go negative) and
    sleeps until that reservation is covered, so concurrent callers are
    spaced 1/rate apart once the burst is spent.
    """

    def __init__(self, rate: float, burst: int):
        if rate is None or rate <= 0:
            raise ConfigurationError(f"Rate must be positive, got {rate}")
        if burst is None or burst <= 0:
            raise ConfigurationError(f"Burst must be positive, got {burst}")

        self.rate = float(rate)
        self.burst = int(burst)
        self.logger = get_logger('rate_limiter')

        self._tokens = float(self.burst)
        self._updated = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._updated
        self._updated = now
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)

    async def acquire(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        """
        Wait until a token is available and consume it

        Args:
            cancel_event: When set while waiting, the reservation is given
                back and RateLimiterError is raised

        Raises:
            RateLimiterError: If cancelled while waiting
        """
        if cancel_event is not None and cancel_event.is_set():
            raise RateLimiterError("Cancelled before acquiring a token")

        async with self._lock:
            self._refill()
            self._tokens -= 1.0
            wait = -self._tokens / self.rate if self._tokens < 0 else 0.0

        if wait <= 0:
            return

        self.logger.debug(f"Waiting {wait:.3f}s for a rate limiter token")
        if cancel_event is None:
            await asyncio.sleep(wait)
            return

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=wait)
        except asyncio.TimeoutError:
            return

        async with self._lock:
            self._refill()
            self._tokens = min(float(self.burst), self._tokens + 1.0)
        raise RateLimiterError("Cancelled while waiting for a token")

    @property
    def available_tokens(self) -> float:
        """Current token balance, refilled to now"""
        self._refill()
        return self._tokens
