"""
Retry with exponential backoff.

Usage:
    result = await with_retry(lambda: client.fetch(url), max_attempts=3)
    if result.ok:
        return result.value
    raise result.error
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

from loguru import logger

T = TypeVar("T")

BackoffFn = Callable[[int], float]
SleepFn = Callable[[float], Awaitable[None]]


def exponential_backoff(base: float = 1.0, maximum: float = 60.0) -> BackoffFn:
    """Delay before retry number ``attempt + 1``: base, 2*base, 4*base, ..."""
    def backoff(attempt: int) -> float:
        return min(base * (2 ** attempt), maximum)
    return backoff


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a retried operation: a value or the last error."""
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Optional[BackoffFn] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: SleepFn = asyncio.sleep,
    label: str = "operation",
) -> RetryResult[T]:
    """
    Run ``operation`` until it succeeds or ``max_attempts`` is reached.

    Exceptions outside ``retry_on`` propagate immediately. No delay follows
    the final attempt.

    Args:
        operation: Zero-argument coroutine factory.
        max_attempts: Total number of attempts (at least 1).
        backoff: Maps the zero-based failed attempt to a delay in seconds.
        retry_on: Exception types that count as retryable failures.
        sleep: Awaitable sleep, replaceable in tests.
        label: Name used in log messages.

    Returns:
        RetryResult with either ``value`` or ``error`` set.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    backoff = backoff or exponential_backoff()
    last_error: Optional[BaseException] = None

    for attempt in range(max_attempts):
        try:
            value = await operation()
            return RetryResult(value=value, attempts=attempt + 1)
        except retry_on as e:
            last_error = e
            logger.warning(f"{label} attempt {attempt + 1}/{max_attempts} failed: {e}")

            if attempt < max_attempts - 1:
                await sleep(backoff(attempt))

    return RetryResult(error=last_error, attempts=max_attempts)
