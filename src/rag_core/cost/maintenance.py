"""Background maintenance for the admission controller.

Each job is a plain coroutine over ``ControllerState`` so it can be run
directly in tests; ``MaintenanceScheduler`` runs them on independent
tickers until stopped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from rag_core.config.settings import Settings
from rag_core.cost.controller import ControllerState
from rag_core.observability.logger import get_logger

logger = get_logger("maintenance")

Job = Callable[[ControllerState], Awaitable[object]]


async def reset_hourly_usage(state: ControllerState) -> None:
    async with state.usage.lock:
        state.usage.reset_hourly()
        state.usage.roll_periods(state.clock())
    logger.info("hourly_usage_reset")


async def sweep_decision_cache(state: ControllerState) -> int:
    evicted = await state.cache.sweep(state.clock())
    if evicted:
        logger.info("decision_cache_swept", evicted=evicted, remaining=len(state.cache))
    return evicted


async def flush_idle_batches(state: ControllerState) -> int:
    return await state.batches.flush_due(state.clock())


class MaintenanceScheduler:
    def __init__(self, state: ControllerState, jobs: list[tuple[str, Job, float]]) -> None:
        self._state = state
        self._jobs = jobs
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def from_settings(cls, state: ControllerState, settings: Settings) -> MaintenanceScheduler:
        return cls(
            state,
            [
                ("hourly_reset", reset_hourly_usage, settings.hourly_reset_interval_s),
                ("cache_sweep", sweep_decision_cache, settings.cache_sweep_interval_s),
                ("idle_batch_flush", flush_idle_batches, settings.idle_batch_flush_interval_s),
            ],
        )

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(self._ticker(name, job, interval), name=f"maintenance:{name}")
            for name, job, interval in self._jobs
        ]
        logger.info("maintenance_started", jobs=[name for name, _, _ in self._jobs])

    async def stop(self) -> None:
        if not self._tasks:
            return
        self._stop.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        logger.info("maintenance_stopped")

    async def _ticker(self, name: str, job: Job, interval: float) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except TimeoutError:
                pass
            else:
                return
            try:
                await job(self._state)
            except Exception as e:
                logger.error("maintenance_job_failed", job=name, error=str(e))
