"""Exponential backoff with full jitter for retrying collaborator calls."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from rag_core.observability.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def backoff_delay(attempt: int, base: float = 0.5, cap: float = 30.0) -> float:
    """Upper bound of the sleep before retry ``attempt`` (0-based): base * 2**attempt, capped."""
    return min(cap, base * (2**attempt))


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base: float = 0.5,
    cap: float = 30.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` up to ``attempts`` times; the last error propagates."""
    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as e:
            if attempt == attempts - 1:
                raise
            delay = random.uniform(0, backoff_delay(attempt, base, cap))
            logger.info(
                "retrying_after_delay",
                delay_seconds=round(delay, 3),
                attempt=attempt + 1,
                error=str(e),
            )
            await sleep(delay)
    raise ValueError("attempts must be positive")
