"""Linear backoff used between retry attempts.

Delay formula: ``attempt * base_delay`` where ``attempt`` is the 1-based number of
the retry about to happen. No jitter, so delays are reproducible in tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

SleepFunc = Callable[[float], Awaitable[None]]


def linear_delay(attempt: int, base_delay: float = 1.0) -> float:
    """Return the delay in seconds before retry number ``attempt``."""
    return max(0.0, attempt * base_delay)


async def sleep_backoff(
    attempt: int,
    base_delay: float = 1.0,
    sleep: SleepFunc | None = None,
) -> float:
    """Sleep for the linear backoff delay and return the delay used."""
    delay = linear_delay(attempt, base_delay)
    await (sleep or asyncio.sleep)(delay)
    return delay
