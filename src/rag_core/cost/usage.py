"""Rolling usage accounting for the admission controller."""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone

import numpy as np

from rag_core.cost.rate_limiter import SlidingWindowRateLimiter
from rag_core.models.domain import BreakerSnapshot, Priority, RequestEntry, UsageMetrics

HOUR_S = 3600.0
MAX_LATENCY_SAMPLES = 1000


class UsageTracker:
    """Request history, rolling costs, counters and latency samples.

    Methods are not synchronized individually; callers hold ``lock`` so
    that rate check, budget check and recording happen atomically.
    """

    def __init__(self, history_limit: int = 1000, now: float | None = None) -> None:
        self.lock = asyncio.Lock()
        self.history: deque[RequestEntry] = deque(maxlen=history_limit)
        self.rate_limiter = SlidingWindowRateLimiter(window_seconds=HOUR_S)
        self.hourly_cost = 0.0
        self.daily_cost = 0.0
        self.monthly_cost = 0.0
        self.successful = 0
        self.failed = 0
        self.cached = 0
        self.batched = 0
        self.batch_flushes = 0
        self._latencies: deque[float] = deque(maxlen=MAX_LATENCY_SAMPLES)
        self._day, self._month = _period_keys(now)

    def roll_periods(self, now: float) -> None:
        """Reset daily/monthly spend when the calendar day/month changed."""
        day, month = _period_keys(now)
        if month != self._month:
            self.reset_monthly()
        if day != self._day:
            self.reset_daily()
        self._day, self._month = day, month

    def record_request(self, entry: RequestEntry) -> None:
        self.history.append(entry)
        self.rate_limiter.record(entry.priority, entry.timestamp)
        self.add_cost(entry.cost)
        self.successful += 1
        cutoff = entry.timestamp - HOUR_S
        while self.history and self.history[0].timestamp <= cutoff:
            self.history.popleft()

    def add_cost(self, cost: float) -> None:
        self.hourly_cost += cost
        self.daily_cost += cost
        self.monthly_cost += cost

    def record_latency(self, latency_ms: float) -> None:
        self._latencies.append(latency_ms)

    def reset_hourly(self) -> None:
        self.hourly_cost = 0.0
        self.successful = 0
        self.failed = 0
        self.cached = 0
        self.batched = 0
        self.batch_flushes = 0

    def reset_daily(self) -> None:
        self.daily_cost = 0.0

    def reset_monthly(self) -> None:
        self.monthly_cost = 0.0

    def snapshot(
        self,
        breaker: BreakerSnapshot,
        cache_hit_rate: float,
        batch_capacity: int,
    ) -> UsageMetrics:
        if self._latencies:
            samples = np.fromiter(self._latencies, dtype=np.float64)
            avg = float(samples.mean())
            p50 = float(np.percentile(samples, 50))
            p95 = float(np.percentile(samples, 95))
        else:
            avg = p50 = p95 = 0.0
        efficiency = 0.0
        if self.batch_flushes and batch_capacity:
            efficiency = min(1.0, self.batched / self.batch_flushes / batch_capacity)
        return UsageMetrics(
            successful=self.successful,
            failed=self.failed,
            cached=self.cached,
            batched=self.batched,
            hourly_cost=self.hourly_cost,
            daily_cost=self.daily_cost,
            monthly_cost=self.monthly_cost,
            avg_latency_ms=avg,
            p50_latency_ms=p50,
            p95_latency_ms=p95,
            cache_hit_rate=cache_hit_rate,
            batch_efficiency=efficiency,
            circuit_breaker=breaker,
        )


def remaining_budget(
    daily_budget: float,
    daily_spent: float,
    monthly_budget: float,
    monthly_spent: float,
) -> float:
    return min(max(0.0, daily_budget - daily_spent), max(0.0, monthly_budget - monthly_spent))


def priority_allocation(remaining: float, quotas: dict[Priority, float], priority: Priority) -> float:
    return remaining * quotas[priority]


def _period_keys(now: float | None) -> tuple[str, str]:
    moment = datetime.now(timezone.utc) if now is None else datetime.fromtimestamp(now, timezone.utc)
    return moment.strftime("%Y-%m-%d"), moment.strftime("%Y-%m")
