# dermreco/utils/retry.py
from __future__ import annotations
from typing import Awaitable, Callable, Optional, TypeVar
import asyncio
import logging
import random

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def exponential_backoff(
    base_s: float = 1.0,
    max_s: float = 10.0,
    jitter: float = 0.3,
    rand: Callable[[], float] = random.random,
) -> Callable[[int], float]:
    """
    Build a delay function: retry n (1-based) waits
      min(base * 2^(n-1) * (1 + U[0, jitter)), max)
    """
    def _delay(retry_number: int) -> float:
        raw = base_s * (2 ** (retry_number - 1))
        return min(raw * (1 + rand() * jitter), max_s)
    return _delay


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    is_retryable: Callable[[BaseException], bool],
    backoff: Callable[[int], float],
    max_attempts: int = 3,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "call",
) -> T:
    """
    Run `fn` up to `max_attempts` times, strictly sequentially.

    - A non-retryable error propagates immediately, untouched.
    - A retryable error sleeps `backoff(n)` before retry n.
    - After the last retryable failure, raises RetryExhausted chained to it.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            delay = backoff(attempt - 1)
            logger.info(f"{label}: retry attempt {attempt}/{max_attempts} after {delay:.2f}s")
            await sleep(delay)
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e
            logger.warning(f"{label}: retryable error on attempt {attempt}/{max_attempts}: {e}")

    assert last_error is not None
    raise RetryExhausted(max_attempts, last_error) from last_error
