"""Token-bucket rate limiter for the enhancement API.

WHY: The text-generation service enforces a requests-per-minute quota.
Exceeding it produces errors that would burn retry budget, so calls are
throttled client-side before they are made.

HOW: Classic token bucket. Each acquire() refills the bucket from the
elapsed time, then waits just long enough to reach one token if the
bucket is dry. The clock and sleep functions are injectable so tests
can drive time deterministically.

RULES:
- Defaults: capacity 15, refill 15/60 tokens per second, starts full
- Wait time is ceil((1 - tokens) / rate) seconds
- After waiting, tokens = 1 and the refill timestamp resets to now
- Tokens never exceed capacity; never negative when a call is admitted
- The 15-per-60-seconds window bound holds only after the initial full
  bucket is spent; the first minute can admit the burst plus the refill
- One limiter per pipeline run; not safe to share between runs
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

from clearnotes.config import RATE_LIMIT_PER_MINUTE

logger = logging.getLogger(__name__)


class TokenBucket:
    """Async token bucket: acquire() suspends until a token is available."""

    def __init__(
        self,
        capacity: float = RATE_LIMIT_PER_MINUTE,
        refill_rate: float = RATE_LIMIT_PER_MINUTE / 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()

    @classmethod
    def per_minute(cls, requests: int, **kwargs) -> TokenBucket:
        """Bucket admitting ``requests`` calls per minute, burst ``requests``."""
        return cls(capacity=requests, refill_rate=requests / 60.0, **kwargs)

    @property
    def tokens(self) -> float:
        """Tokens currently in the bucket (as of the last acquire)."""
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, suspending until one is available."""
        self._refill()

        if self._tokens < 1:
            wait_s = math.ceil((1 - self._tokens) / self.refill_rate)
            logger.warning("Rate limit reached. Waiting %ss before next request...", wait_s)
            await self._sleep(wait_s)
            self._tokens = 1.0
            self._last_refill = self._clock()

        self._tokens -= 1
