"""
Bounded retry for coroutine calls.

Usage:
    from linkcal.retry import linear_backoff, retry_async

    result = await retry_async(
        lambda: provider.create_event(...),
        max_attempts=3,
        backoff=linear_backoff(1.0),
    )
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from linkcal.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """Delay of ``attempt * step_seconds`` after the given failed attempt."""
    return lambda attempt: attempt * step_seconds


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Callable[[int], float] = linear_backoff(1.0),
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    description: str = "operation",
) -> T:
    """
    Await ``func()`` up to ``max_attempts`` times.

    Sleeps ``backoff(attempt)`` seconds between attempts. The last
    exception is re-raised once attempts are exhausted; exceptions not in
    ``retry_on`` propagate immediately.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except retry_on as e:
            if attempt == max_attempts:
                raise
            delay = backoff(attempt)
            logger.info(
                "retrying",
                operation=description,
                attempt=attempt,
                max_attempts=max_attempts,
                delay_seconds=delay,
                error=str(e),
            )
            if delay > 0:
                await asyncio.sleep(delay)

    raise AssertionError("unreachable")
