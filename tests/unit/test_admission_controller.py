"""Tests for cost-aware admission decisions."""

import asyncio

import pytest

from conftest import FakeClock

from rag_core.config.settings import Settings
from rag_core.cost.controller import (
    AdmissionController,
    estimate_cost,
    estimate_tokens,
    generate_alternatives,
)
from rag_core.scoring.reason_codes import ReasonCode


def make_controller(clock=None, **overrides):
    settings = Settings(_env_file=None, **overrides)
    return AdmissionController(settings, clock=clock or FakeClock())


async def test_within_budget_proceeds_and_records(controller):
    decision = await controller.should_proceed("rag_query", 100, 0.001, "medium", "u1")
    assert decision.allowed
    assert decision.suggested_action == "proceed"
    assert decision.reason == "Within budget and limits"
    assert not decision.cache_hit
    metrics = await controller.get_metrics()
    assert metrics.successful == 1
    assert metrics.daily_cost == pytest.approx(0.001)
    assert metrics.hourly_cost == pytest.approx(0.001)


async def test_repeat_request_is_a_free_cache_hit(controller):
    await controller.should_proceed("rag_query", 100, 0.001, "medium", "u1")
    hit = await controller.should_proceed("rag_query", 120, 0.001, "medium", "u1")
    assert hit.allowed
    assert hit.cache_hit
    assert hit.estimated_cost == 0.0
    metrics = await controller.get_metrics()
    assert metrics.successful == 1
    assert metrics.cached == 1
    assert metrics.daily_cost == pytest.approx(0.001)
    assert metrics.cache_hit_rate == 0.5


async def test_cache_is_scoped_per_user(controller):
    await controller.should_proceed("rag_query", 100, 0.001, "medium", "u1")
    other = await controller.should_proceed("rag_query", 100, 0.001, "medium", "u2")
    assert not other.cache_hit


async def test_low_priority_rate_limit():
    # Caching off: identical repeats would otherwise be answered from the decision cache.
    controller = make_controller(enable_caching=False)
    for _ in range(30):
        decision = await controller.should_proceed("rag_query", 100, 0.0001, "low")
        assert decision.allowed
    denied = await controller.should_proceed("rag_query", 100, 0.0001, "low")
    assert not denied.allowed
    assert denied.reason == "Rate limit exceeded"
    assert denied.reason_code == ReasonCode.RATE_LIMITED
    assert denied.suggested_action == "defer"
    descriptions = [a.description for a in denied.alternatives]
    assert "Use local model instead" in descriptions
    assert "Cache result from similar query" in descriptions

    # Other tiers keep their own windows
    assert (await controller.should_proceed("rag_query", 100, 0.0001, "medium")).allowed


async def test_identical_repeats_hit_cache_before_rate_limit():
    controller = make_controller()
    decisions = [
        await controller.should_proceed("rag_query", 100, 0.0001, "low", "u1") for _ in range(100)
    ]
    assert all(d.allowed for d in decisions)
    assert sum(d.cache_hit for d in decisions) == 99
    metrics = await controller.get_metrics()
    assert metrics.successful == 1
    assert metrics.cached == 99


async def test_rate_window_slides():
    clock = FakeClock()
    controller = make_controller(clock=clock, enable_caching=False, hourly_rate_limit=2)
    assert (await controller.should_proceed("rag_query", 10, 0.0, "medium")).allowed
    assert (await controller.should_proceed("rag_query", 10, 0.0, "medium")).allowed
    assert not (await controller.should_proceed("rag_query", 10, 0.0, "medium")).allowed
    clock.advance(3601)
    assert (await controller.should_proceed("rag_query", 10, 0.0, "medium")).allowed


async def test_budget_quota_per_priority():
    controller = make_controller(enable_caching=False)
    controller.state.usage.add_cost(4.90)

    low = await controller.should_proceed("rag_query", 100, 0.01, "low")
    assert not low.allowed
    assert low.reason == "Budget quota exceeded for priority level"
    assert low.reason_code == ReasonCode.BUDGET_QUOTA_EXCEEDED
    assert low.estimated_cost == 0.01

    critical = await controller.should_proceed("rag_query", 100, 0.01, "critical")
    assert critical.allowed
    assert critical.reason == "Within budget and limits"


async def test_critical_forced_through_quota_but_not_past_remaining_budget(controller):
    controller.state.usage.add_cost(4.90)

    forced = await controller.should_proceed("rag_query", 100, 0.08, "critical")
    assert forced.allowed
    assert forced.reason == "Budget quota exceeded; critical priority forced"

    exhausted = await controller.should_proceed("rag_query", 5000, 0.5, "critical")
    assert not exhausted.allowed
    assert exhausted.reason == "Remaining budget exhausted"


async def test_forced_decisions_are_not_cached(controller):
    controller.state.usage.add_cost(4.90)
    await controller.should_proceed("rag_query", 100, 0.06, "critical", "ops")
    again = await controller.should_proceed("rag_query", 100, 0.01, "critical", "ops")
    assert not again.cache_hit


async def test_denials_record_no_cost():
    controller = make_controller(enable_caching=False)
    controller.state.usage.add_cost(4.90)
    before = await controller.get_metrics()
    await controller.should_proceed("rag_query", 100, 0.05, "low")
    after = await controller.get_metrics()
    assert after.daily_cost == before.daily_cost
    assert after.successful == before.successful


async def test_open_breaker_defers_all_but_critical(controller):
    for _ in range(5):
        await controller.report_outcome(False)

    deferred = await controller.should_proceed("rag_query", 100, 0.001, "high")
    assert not deferred.allowed
    assert deferred.reason == "Circuit breaker open"
    assert deferred.reason_code == ReasonCode.CIRCUIT_OPEN
    assert deferred.backoff_delay == pytest.approx(60.0)

    critical = await controller.should_proceed("rag_query", 100, 0.001, "critical")
    assert critical.allowed


async def test_batchable_operation_is_queued_at_discount(controller):
    decision = await controller.should_proceed("embedding", 500, 0.01, "medium")
    assert not decision.allowed
    assert decision.suggested_action == "defer"
    assert decision.reason == "Queued for batch processing"
    assert decision.batch_id is not None
    assert decision.estimated_cost == pytest.approx(0.007)
    assert controller.state.batches.pending("medium") == 1
    assert (await controller.get_metrics()).daily_cost == 0.0

    assert await controller.state.batches.flush("medium") == 1
    metrics = await controller.get_metrics()
    assert metrics.daily_cost == pytest.approx(0.007)
    assert metrics.batched == 1


async def test_full_batch_queue_flushes_inline():
    controller = make_controller(batch_max_size=2)
    first = await controller.should_proceed("summarization", 100, 0.01, "low")
    second = await controller.should_proceed("summarization", 100, 0.01, "low")
    assert first.batch_id == second.batch_id
    assert controller.state.batches.pending("low") == 0
    metrics = await controller.get_metrics()
    assert metrics.batched == 2
    assert metrics.batch_efficiency == 1.0


async def test_batching_disabled_runs_immediately():
    controller = make_controller(enable_batching=False)
    decision = await controller.should_proceed("embedding", 100, 0.01, "medium")
    assert decision.allowed
    assert decision.batch_id is None


async def test_internal_error_fails_open_only_for_critical(controller, monkeypatch):
    async def broken_get(key, now):
        raise RuntimeError("cache corrupted")

    monkeypatch.setattr(controller.state.cache, "get", broken_get)

    medium = await controller.should_proceed("rag_query", 100, 0.001, "medium")
    assert not medium.allowed
    assert medium.reason.startswith("Admission controller error")
    assert medium.reason_code == ReasonCode.ADMISSION_ERROR

    critical = await controller.should_proceed("rag_query", 100, 0.001, "critical")
    assert critical.allowed

    metrics = await controller.get_metrics()
    assert metrics.failed == 2
    assert metrics.circuit_breaker.failure_count == 2


async def test_daily_spend_resets_on_new_day():
    clock = FakeClock()
    controller = make_controller(clock=clock, enable_caching=False)
    controller.state.usage.add_cost(4.99)
    assert not (await controller.should_proceed("rag_query", 100, 0.01, "medium")).allowed
    clock.advance(24 * 3600)
    assert (await controller.should_proceed("rag_query", 100, 0.01, "medium")).allowed


async def test_metrics_track_admission_latency(controller):
    await controller.should_proceed("rag_query", 100, 0.001)
    metrics = await controller.get_metrics()
    assert metrics.avg_latency_ms >= 0.0
    assert metrics.p95_latency_ms >= metrics.p50_latency_ms
    assert metrics.circuit_breaker.state == "closed"


def test_estimates():
    assert estimate_tokens("abcdefgh") == 2
    assert estimate_tokens("abcdefghi") == 3
    assert estimate_cost(0.8, 1000) == pytest.approx(0.03)
    assert estimate_cost(0.2, 1000) == pytest.approx(0.01)


def test_alternatives_by_priority():
    assert [a.description for a in generate_alternatives("critical")] == ["Retry in 5 minutes"]
    assert len(generate_alternatives("medium")) == 2
    assert len(generate_alternatives("low")) == 3


async def test_concurrent_requests_respect_rate_limit():
    controller = make_controller(enable_caching=False, hourly_rate_limit=10)
    decisions = await asyncio.gather(
        *(controller.should_proceed("rag_query", 100, 0.001, "medium") for _ in range(25))
    )
    allowed = [d for d in decisions if d.allowed]
    assert len(allowed) == 10
    assert all(d.reason_code == ReasonCode.RATE_LIMITED for d in decisions if not d.allowed)
    metrics = await controller.get_metrics()
    assert metrics.successful == 10
    assert metrics.daily_cost == pytest.approx(10 * 0.001)


async def test_concurrent_requests_spend_like_sequential_ones():
    def budget_controller():
        return make_controller(enable_caching=False, daily_budget_usd=1.0, hourly_rate_limit=1000)

    sequential = budget_controller()
    expected = [await sequential.should_proceed("rag_query", 100, 0.05, "medium") for _ in range(40)]

    concurrent = budget_controller()
    decisions = await asyncio.gather(
        *(concurrent.should_proceed("rag_query", 100, 0.05, "medium") for _ in range(40))
    )

    allowed = sum(d.allowed for d in decisions)
    assert allowed == sum(d.allowed for d in expected)
    assert 0 < allowed < 40
    metrics = await concurrent.get_metrics()
    assert metrics.daily_cost == pytest.approx(allowed * 0.05)
    assert metrics.daily_cost == pytest.approx((await sequential.get_metrics()).daily_cost)


async def test_concurrent_batched_requests_are_charged_once():
    controller = make_controller(enable_caching=False, batch_max_size=3)
    decisions = await asyncio.gather(
        *(controller.should_proceed("embedding", 100, 0.01, "medium") for _ in range(10))
    )
    direct = sum(d.allowed for d in decisions)
    assert direct + sum(1 for d in decisions if d.batch_id) == 10
    await controller.state.batches.flush_all()

    metrics = await controller.get_metrics()
    assert metrics.batched == 10 - direct
    assert metrics.daily_cost == pytest.approx(metrics.batched * 0.007 + direct * 0.01)
