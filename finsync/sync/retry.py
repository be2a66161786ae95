"""Bounded retry for eventually-consistent lookups."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class RetryResult(Generic[T]):
    value: T | None = None
    attempts: int = 0
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.value is not None


def exponential_backoff(base_delay: float) -> Callable[[int], float]:
    """Delay before retry number `n` (0-based): base, 2*base, 4*base, ..."""
    def _delay(n: int) -> float:
        return base_delay * (2 ** n)
    return _delay


async def with_retry(
    operation: Callable[[], Awaitable[T | None]],
    *,
    max_attempts: int,
    backoff: Callable[[int], float],
    sleep: SleepFn = asyncio.sleep,
) -> RetryResult[T]:
    """Call `operation` until it returns a non-None value or attempts run out.

    A `None` result counts as a miss. Exceptions are captured on the result
    (the last one wins) and also count as a miss; they are never raised.
    """
    result: RetryResult[T] = RetryResult()
    attempts = max(1, int(max_attempts))

    for n in range(attempts):
        if n > 0:
            delay = backoff(n - 1)
            if delay > 0:
                await sleep(delay)
        result.attempts = n + 1
        try:
            value = await operation()
        except Exception as exc:
            result.error = exc
            continue
        if value is not None:
            result.value = value
            result.error = None
            return result

    return result
