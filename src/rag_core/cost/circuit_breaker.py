"""Failure-isolation circuit breaker for the admission controller."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from rag_core.models.domain import BreakerSnapshot, BreakerState
from rag_core.observability.logger import get_logger

logger = get_logger("circuit_breaker")


class CircuitBreaker:
    """closed -> open after ``failure_threshold`` failures; open -> half-open
    once ``timeout_s`` has passed since the last failure; half-open -> closed
    on success, back to open on failure.

    The open -> half-open transition is derived from the clock on read, so
    no timer is needed. Mutations go through ``record_failure`` and
    ``record_success`` only.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout_s: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.timeout_s = timeout_s
        self._clock = clock
        self._state: BreakerState = "closed"
        self._failure_count = 0
        self._last_failure: float | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> BreakerState:
        if self._state == "open" and self._should_attempt_reset():
            return "half-open"
        return self._state

    def is_open(self) -> bool:
        return self.state == "open"

    def backoff_delay(self) -> float:
        """Seconds until the breaker will admit a trial request; 0 unless open."""
        if self.state != "open" or self._last_failure is None:
            return 0.0
        return max(0.0, self.timeout_s - (self._clock() - self._last_failure))

    async def record_failure(self) -> None:
        async with self._lock:
            previous = self.state
            self._failure_count += 1
            self._last_failure = self._clock()
            if previous == "half-open" or self._failure_count >= self.failure_threshold:
                self._state = "open"
                if previous != "open":
                    logger.warning(
                        "circuit_opened",
                        failure_count=self._failure_count,
                        from_state=previous,
                    )

    async def record_success(self) -> None:
        async with self._lock:
            previous = self.state
            self._failure_count = 0
            self._state = "closed"
            if previous != "closed":
                logger.info("circuit_closed", from_state=previous)

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            state=self.state,
            failure_count=self._failure_count,
            last_failure=self._last_failure,
        )

    def _should_attempt_reset(self) -> bool:
        if self._last_failure is None:
            return True
        return self._clock() - self._last_failure >= self.timeout_s
