"""Per-priority batch queues for deferrable operations, flushed at a discount."""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import uuid4

from rag_core.cost.usage import UsageTracker
from rag_core.models.domain import PRIORITIES, BatchItem, Priority
from rag_core.observability.logger import get_logger

logger = get_logger("batching")

BatchExecutor = Callable[[str, list[BatchItem]], Awaitable[None]]


async def log_batch_executor(operation: str, items: list[BatchItem]) -> None:
    logger.info("batch_executed", operation=operation, count=len(items))


def _new_batch_id() -> str:
    return f"batch_{uuid4().hex[:12]}"


@dataclass
class BatchQueue:
    priority: Priority
    capacity: int
    items: list[BatchItem] = field(default_factory=list)
    batch_id: str = field(default_factory=_new_batch_id)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def has_room(self) -> bool:
        return len(self.items) < self.capacity

    def is_due(self, now: float, window_s: float) -> bool:
        return bool(self.items) and now - self.items[0].enqueued_at >= window_s

    def take(self) -> tuple[str, list[BatchItem]]:
        batch_id, items = self.batch_id, self.items
        self.items = []
        self.batch_id = _new_batch_id()
        return batch_id, items


class BatchProcessor:
    """Owns one queue per priority.

    A queue is flushed when it fills up or when its oldest item has waited
    ``window_s``. Flushing groups items by operation, runs the executor once
    per group, and charges the group's cost minus ``discount`` to usage.
    """

    def __init__(
        self,
        usage: UsageTracker,
        executor: BatchExecutor | None = None,
        capacity: int = 20,
        window_s: float = 5.0,
        discount: float = 0.3,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._usage = usage
        self._executor = executor or log_batch_executor
        self.capacity = capacity
        self.window_s = window_s
        self.discount = discount
        self._clock = clock
        self.queues: dict[Priority, BatchQueue] = {p: BatchQueue(p, capacity) for p in PRIORITIES}

    def pending(self, priority: Priority) -> int:
        return len(self.queues[priority].items)

    async def enqueue(
        self,
        operation: str,
        tokens: int,
        cost: float,
        priority: Priority,
        user_id: str | None = None,
    ) -> tuple[str, bool] | None:
        """Queue an item; returns (batch_id, queue_full) or None when there is no room."""
        queue = self.queues[priority]
        async with queue.lock:
            if not queue.has_room():
                return None
            queue.items.append(
                BatchItem(
                    id=f"item_{uuid4().hex[:12]}",
                    operation=operation,
                    tokens=tokens,
                    cost=cost,
                    priority=priority,
                    enqueued_at=self._clock(),
                    user_id=user_id,
                )
            )
            return queue.batch_id, not queue.has_room()

    async def flush(self, priority: Priority) -> int:
        queue = self.queues[priority]
        async with queue.lock:
            batch_id, items = queue.take()
        if not items:
            return 0

        grouped: dict[str, list[BatchItem]] = defaultdict(list)
        for item in items:
            grouped[item.operation].append(item)

        charged = 0.0
        for operation, group in grouped.items():
            try:
                await self._executor(operation, group)
            except Exception as e:
                logger.error(
                    "batch_operation_failed",
                    batch_id=batch_id,
                    operation=operation,
                    count=len(group),
                    error=str(e),
                )
                async with self._usage.lock:
                    self._usage.failed += len(group)
                continue
            cost = sum(i.cost for i in group) * (1.0 - self.discount)
            charged += cost
            async with self._usage.lock:
                self._usage.add_cost(cost)
                self._usage.batched += len(group)

        async with self._usage.lock:
            self._usage.batch_flushes += 1

        logger.info(
            "batch_flushed",
            batch_id=batch_id,
            priority=priority,
            items=len(items),
            operations=len(grouped),
            charged=round(charged, 6),
        )
        return len(items)

    async def flush_due(self, now: float | None = None) -> int:
        """Flush every queue whose batch window has elapsed."""
        now = self._clock() if now is None else now
        flushed = 0
        for priority, queue in self.queues.items():
            if queue.is_due(now, self.window_s):
                flushed += await self.flush(priority)
        return flushed

    async def flush_all(self) -> int:
        flushed = 0
        for priority in PRIORITIES:
            flushed += await self.flush(priority)
        return flushed
