"""Bounded retry combinator returning a tagged outcome.

WHY: Enhancement calls fail transiently (quota errors, malformed JSON).
The enhancer must retry a fixed number of times and then degrade
gracefully instead of raising. Expressing that as a reusable combinator
keeps the control flow out of the enhancer and makes it testable alone.

HOW: tenacity.AsyncRetrying drives the attempts with a stop-after-N and
a fixed wait. The final exception is captured into a RetryOutcome
rather than propagated.

RULES:
- retries=3 means up to 4 attempts in total
- Only Exception subclasses are retried; cancellation propagates
- The sleep function is injectable so tests never wait for real
- on_retry(attempt_number, error) is called before each backoff sleep
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """Tagged result of a retried operation.

    RULES:
    - success=True: value holds the operation's return value
    - success=False: error holds the last exception raised
    - attempts counts every call made, including the successful one
    """

    success: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    delay_s: float,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> RetryOutcome[T]:
    """Run ``operation`` with up to ``retries`` retries and a fixed delay.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        retries: Number of retries after the first attempt.
        delay_s: Seconds to wait between attempts.
        sleep: Awaitable sleep used between attempts.
        on_retry: Optional hook called with (attempt_number, error) before
            each wait.

    Returns:
        RetryOutcome tagged with success or the last error.
    """
    if retries < 0:
        raise ValueError("retries must be >= 0")

    def _before_sleep(retry_state) -> None:  # noqa: ANN001
        if on_retry is not None and retry_state.outcome is not None:
            on_retry(retry_state.attempt_number, retry_state.outcome.exception())

    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_fixed(delay_s),
        retry=retry_if_exception_type(Exception),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=True,
    )

    attempts = 0
    value = None
    try:
        async for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                value = await operation()
    except Exception as exc:
        return RetryOutcome(success=False, error=exc, attempts=attempts)

    return RetryOutcome(success=True, value=value, attempts=attempts)
