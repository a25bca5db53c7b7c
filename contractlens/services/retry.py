"""
Retry With Backoff

Stateless retry helper for async operations. All attempt bookkeeping lives
in the call frame, so concurrent callers never share counters.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_exception: BaseException):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"Operation failed after {attempts} attempts: {last_exception}"
        )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    is_retryable: Callable[[Exception], bool],
    backoff_seconds: float = 1.0,
    jitter_seconds: float = 0.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation_name: Optional[str] = None,
) -> T:
    """
    Run operation until it succeeds, fails non-retryably, or attempts run out.

    Non-retryable exceptions are re-raised unchanged on the attempt they occur,
    without consuming further attempts. Retryable exceptions on the final
    attempt raise RetryExhausted chained to the last error.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts including the first (>= 1)
        is_retryable: Classifies an exception as transient
        backoff_seconds: Fixed delay between attempts
        jitter_seconds: Upper bound of random delay added to each backoff
        sleep: Awaitable sleep, injectable for tests
        operation_name: Label for log events

    Returns:
        The operation's result
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    log = logger.bind(operation=operation_name or getattr(operation, "__name__", "operation"))

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                log.info(
                    "non_retryable_exception",
                    attempt=attempt,
                    exception_type=type(e).__name__,
                )
                raise

            if attempt == max_attempts:
                log.warning(
                    "retries_exhausted",
                    attempts=attempt,
                    exception_type=type(e).__name__,
                )
                raise RetryExhausted(attempt, e) from e

            delay = backoff_seconds + random.uniform(0, jitter_seconds)
            log.info(
                "retry_scheduled",
                attempt=attempt,
                max_attempts=max_attempts,
                delay_seconds=round(delay, 3),
                exception_type=type(e).__name__,
            )
            await sleep(delay)

    # Unreachable: the loop either returns or raises
    raise AssertionError("retry loop exited without result")


__all__ = ["retry_with_backoff", "RetryExhausted"]
