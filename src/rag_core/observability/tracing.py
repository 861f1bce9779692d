"""Lightweight request tracing with spans."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import uuid4


@dataclass
class Span:
    name: str
    start_ms: float
    end_ms: float = 0.0
    metadata: dict = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


class TraceContext:
    def __init__(self, trace_id: str | None = None, deadline_ms: int | None = None) -> None:
        self.trace_id = trace_id or f"rag_{uuid4().hex[:16]}"
        self.spans: list[Span] = []
        self.start_time = time.monotonic()
        self._deadline = self.start_time + deadline_ms / 1000 if deadline_ms else None

    @contextmanager
    def span(self, name: str, **metadata):
        s = Span(
            name=name,
            start_ms=(time.monotonic() - self.start_time) * 1000,
            metadata=metadata,
        )
        try:
            yield s
        finally:
            s.end_ms = (time.monotonic() - self.start_time) * 1000
            self.spans.append(s)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.start_time) * 1000

    @property
    def deadline_passed(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def expired(self, slack_s: float = 0.005) -> bool:
        """True when the deadline has passed or is within ``slack_s`` of passing."""
        return self._deadline is not None and time.monotonic() + slack_s >= self._deadline

    def remaining_s(self, cap: float) -> float:
        """Seconds left before the deadline, never more than ``cap``."""
        if self._deadline is None:
            return cap
        return max(0.0, min(cap, self._deadline - time.monotonic()))

    def stage_latencies(self) -> dict[str, float]:
        return {s.name: round(s.duration_ms, 2) for s in self.spans}
