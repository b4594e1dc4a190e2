"""Backoff-and-retry for Pricing Service calls.

Only transport failures and 5xx answers are worth repeating; a malformed
body or a 4xx will not get better on the next attempt, so callers narrow
the retried set with ``should_retry``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int, base_delay: float, max_delay: float, jitter: bool = True
) -> float:
    """Seconds to wait before retry number *attempt* (1-based)."""
    delay = min(base_delay * 2 ** (attempt - 1), max_delay)
    if jitter:
        # 50% to 150% of the nominal delay
        delay *= 0.5 + random.random()
    return delay


def async_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    should_retry: Callable[[Exception], bool] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Retry the wrapped coroutine up to *max_retries* extra times.

    Exceptions outside *exceptions*, or for which *should_retry* returns
    False, propagate on the first attempt. When every attempt fails the
    last exception is re-raised unchanged.
    """

    def decorator(
        func: Callable[..., Awaitable[T]],
    ) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: object, **kwargs: object) -> T:
            retries_left = max_retries
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if should_retry is not None and not should_retry(exc):
                        raise
                    if retries_left <= 0:
                        logger.error(
                            "%s gave up after %d attempts: %s",
                            func.__qualname__,
                            attempt,
                            exc,
                        )
                        raise
                    retries_left -= 1
                    delay = backoff_delay(attempt, base_delay, max_delay, jitter)
                    logger.warning(
                        "%s failed (attempt %d of %d), retrying in %.2fs: %s",
                        func.__qualname__,
                        attempt,
                        max_retries + 1,
                        delay,
                        exc,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
