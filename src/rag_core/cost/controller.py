"""Cost-aware admission control: allow, deny or degrade an operation before it runs.

Decision order for ``should_proceed``:

1. Circuit breaker open and priority is not critical: defer with a backoff delay.
2. Cached decision for (operation, token bucket, 5-minute bucket, user): return
   a copy flagged ``cache_hit`` with zero cost.
3. Priority tier over its hourly limit (base limit x priority multiplier): defer.
4. Cost above the priority's quota of the remaining budget: defer. Critical
   work is forced through as long as the remaining budget itself covers it.
5. Batchable operation with room in its priority queue: queue it, defer with
   a batch id. The discounted cost is charged when the batch flushes.
6. Otherwise record the request against usage, cache the decision, proceed.

Denials never record cost. Internal errors count as breaker failures and
fail open for critical priority only.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from rag_core.config.settings import Settings
from rag_core.cost.batching import BatchExecutor, BatchProcessor
from rag_core.cost.circuit_breaker import CircuitBreaker
from rag_core.cost.decision_cache import DecisionCache, cache_key
from rag_core.cost.usage import UsageTracker, priority_allocation, remaining_budget
from rag_core.models.domain import (
    Alternative,
    CostDecision,
    DegradationAction,
    Priority,
    RequestEntry,
    UsageMetrics,
)
from rag_core.observability.logger import get_logger
from rag_core.observability.metrics import log_admission_decision
from rag_core.scoring.reason_codes import ReasonCode

logger = get_logger("admission")

HIGH_COMPLEXITY = 0.7
COST_PER_TOKEN_COMPLEX = 0.00003
COST_PER_TOKEN_SIMPLE = 0.00001


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def estimate_cost(complexity: float, tokens: int) -> float:
    rate = COST_PER_TOKEN_COMPLEX if complexity > HIGH_COMPLEXITY else COST_PER_TOKEN_SIMPLE
    return tokens * rate


def generate_alternatives(priority: Priority) -> tuple[Alternative, ...]:
    alternatives: list[Alternative] = []
    if priority != "critical":
        alternatives.append(Alternative("Use local model instead", cost=0.0, quality=0.7))
    if priority == "low":
        alternatives.append(Alternative("Cache result from similar query", cost=0.0, quality=0.6))
    alternatives.append(Alternative("Retry in 5 minutes", cost=0.0, quality=1.0))
    return tuple(alternatives)


@dataclass
class ControllerState:
    """The controller's process-wide mutable state, one lock per resource."""

    usage: UsageTracker
    cache: DecisionCache
    breaker: CircuitBreaker
    batches: BatchProcessor
    clock: Callable[[], float]


class AdmissionController:
    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], float] = time.time,
        batch_executor: BatchExecutor | None = None,
    ) -> None:
        self._settings = settings
        usage = UsageTracker(history_limit=settings.request_history_limit, now=clock())
        self.state = ControllerState(
            usage=usage,
            cache=DecisionCache(ttl_s=settings.decision_cache_ttl_s),
            breaker=CircuitBreaker(
                failure_threshold=settings.circuit_breaker_threshold,
                timeout_s=settings.circuit_breaker_timeout_s,
                clock=clock,
            ),
            batches=BatchProcessor(
                usage,
                executor=batch_executor,
                capacity=settings.batch_max_size,
                window_s=settings.batch_window_s,
                discount=settings.batch_discount,
                clock=clock,
            ),
            clock=clock,
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self.state.breaker

    async def should_proceed(
        self,
        operation: str,
        estimated_tokens: int,
        estimated_cost: float,
        priority: Priority = "medium",
        user_id: str | None = None,
    ) -> CostDecision:
        """Return a fresh decision; never raises."""
        started = time.perf_counter()
        full_queue: Priority | None = None
        try:
            decision, full_queue = await self._decide(
                operation, estimated_tokens, estimated_cost, priority, user_id
            )
        except Exception as e:
            logger.error("admission_failed", operation=operation, priority=priority, error=str(e))
            await self.state.breaker.record_failure()
            async with self.state.usage.lock:
                self.state.usage.failed += 1
            critical = priority == "critical"
            decision = CostDecision(
                allowed=critical,
                reason=f"Admission controller error: {e}",
                suggested_action="proceed" if critical else "defer",
                estimated_cost=estimated_cost if critical else 0.0,
                priority=priority,
                reason_code=ReasonCode.ADMISSION_ERROR,
            )

        if full_queue is not None:
            await self.state.batches.flush(full_queue)

        async with self.state.usage.lock:
            self.state.usage.record_latency((time.perf_counter() - started) * 1000)

        log_admission_decision(
            operation=operation,
            priority=priority,
            allowed=decision.allowed,
            action=decision.suggested_action,
            reason=decision.reason,
            estimated_cost=decision.estimated_cost,
        )
        return decision

    async def _decide(
        self,
        operation: str,
        estimated_tokens: int,
        estimated_cost: float,
        priority: Priority,
        user_id: str | None,
    ) -> tuple[CostDecision, Priority | None]:
        settings = self._settings
        state = self.state
        now = state.clock()

        if priority != "critical" and state.breaker.is_open():
            return (
                _deny(
                    "Circuit breaker open",
                    priority,
                    ReasonCode.CIRCUIT_OPEN,
                    backoff_delay=state.breaker.backoff_delay(),
                ),
                None,
            )

        key = cache_key(
            operation,
            estimated_tokens,
            user_id,
            now,
            token_bucket=settings.cache_token_bucket,
            time_bucket_s=settings.cache_time_bucket_s,
        )
        if settings.enable_caching:
            cached = await state.cache.get(key, now)
            if cached is not None:
                async with state.usage.lock:
                    state.usage.cached += 1
                return cached, None

        forced = False
        async with state.usage.lock:
            usage = state.usage
            usage.roll_periods(now)

            limit = settings.hourly_rate_limit * settings.priority_rate_multipliers[priority]
            if usage.rate_limiter.is_limited(priority, limit, now):
                return (
                    _deny(
                        "Rate limit exceeded",
                        priority,
                        ReasonCode.RATE_LIMITED,
                        alternatives=generate_alternatives(priority),
                    ),
                    None,
                )

            remaining = remaining_budget(
                settings.daily_budget_usd,
                usage.daily_cost,
                settings.monthly_budget_usd,
                usage.monthly_cost,
            )
            allocation = priority_allocation(remaining, settings.priority_quotas, priority)
            if estimated_cost > allocation:
                if priority != "critical":
                    return (
                        _deny(
                            "Budget quota exceeded for priority level",
                            priority,
                            ReasonCode.BUDGET_QUOTA_EXCEEDED,
                            estimated_cost=estimated_cost,
                            alternatives=generate_alternatives(priority),
                        ),
                        None,
                    )
                if estimated_cost > remaining:
                    return (
                        _deny(
                            "Remaining budget exhausted",
                            priority,
                            ReasonCode.BUDGET_QUOTA_EXCEEDED,
                            estimated_cost=estimated_cost,
                            alternatives=generate_alternatives(priority),
                        ),
                        None,
                    )
                forced = True

            if (
                not forced
                and settings.enable_batching
                and operation in settings.batchable_operations
            ):
                queued = await state.batches.enqueue(
                    operation, estimated_tokens, estimated_cost, priority, user_id
                )
                if queued is not None:
                    batch_id, full = queued
                    decision = CostDecision(
                        allowed=False,
                        reason="Queued for batch processing",
                        suggested_action="defer",
                        estimated_cost=estimated_cost * (1.0 - settings.batch_discount),
                        priority=priority,
                        batch_id=batch_id,
                    )
                    return decision, priority if full else None

            usage.record_request(
                RequestEntry(
                    timestamp=now,
                    operation=operation,
                    cost=estimated_cost,
                    tokens=estimated_tokens,
                    priority=priority,
                    user_id=user_id,
                )
            )

        reason = (
            "Budget quota exceeded; critical priority forced"
            if forced
            else "Within budget and limits"
        )
        decision = CostDecision(
            allowed=True,
            reason=reason,
            suggested_action="proceed",
            estimated_cost=estimated_cost,
            priority=priority,
        )
        if settings.enable_caching and not forced:
            await state.cache.put(key, decision, now)
        return decision, None

    async def report_outcome(self, success: bool) -> None:
        """Feed a downstream collaborator outcome into the circuit breaker."""
        if success:
            await self.state.breaker.record_success()
        else:
            await self.state.breaker.record_failure()

    async def get_metrics(self) -> UsageMetrics:
        async with self.state.usage.lock:
            return self.state.usage.snapshot(
                breaker=self.state.breaker.snapshot(),
                cache_hit_rate=self.state.cache.hit_rate,
                batch_capacity=self.state.batches.capacity,
            )


def _deny(
    reason: str,
    priority: Priority,
    code: ReasonCode,
    estimated_cost: float = 0.0,
    alternatives: tuple[Alternative, ...] = (),
    backoff_delay: float | None = None,
    action: DegradationAction = "defer",
) -> CostDecision:
    return CostDecision(
        allowed=False,
        reason=reason,
        suggested_action=action,
        estimated_cost=estimated_cost,
        priority=priority,
        alternatives=alternatives,
        backoff_delay=backoff_delay,
        reason_code=code,
    )
