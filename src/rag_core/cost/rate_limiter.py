"""In-memory sliding window rate limiter."""

from __future__ import annotations

from collections import defaultdict, deque


class SlidingWindowRateLimiter:
    """Tracks request timestamps per key within a trailing window.

    Not synchronized: callers hold the usage lock around check-and-record.
    """

    def __init__(self, window_seconds: float = 3600.0) -> None:
        self.window_seconds = window_seconds
        self._requests: dict[str, deque[float]] = defaultdict(deque)

    def count(self, key: str, now: float) -> int:
        self._prune(key, now)
        return len(self._requests[key])

    def is_limited(self, key: str, limit: float, now: float) -> bool:
        """True when the key has already used ``limit`` requests in the window."""
        return self.count(key, now) >= limit

    def record(self, key: str, now: float) -> None:
        self._requests[key].append(now)

    def reset(self) -> None:
        self._requests.clear()

    def _prune(self, key: str, now: float) -> None:
        cutoff = now - self.window_seconds
        timestamps = self._requests[key]
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()
