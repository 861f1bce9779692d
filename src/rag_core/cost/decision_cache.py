"""TTL cache of admission decisions."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from rag_core.models.domain import CacheEntry, CostDecision


class DecisionCache:
    def __init__(self, ttl_s: float = 300.0) -> None:
        self.ttl_s = ttl_s
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    async def get(self, key: str, now: float) -> CostDecision | None:
        """Return a cache-hit copy of the stored decision, or None if absent or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expired(now):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return replace(entry.decision, cache_hit=True, estimated_cost=0.0)

    async def put(self, key: str, decision: CostDecision, now: float) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(decision=decision, created_at=now, ttl=self.ttl_s)

    async def sweep(self, now: float) -> int:
        """Evict expired entries; returns how many were removed."""
        async with self._lock:
            expired = [k for k, e in self._entries.items() if e.expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0


def cache_key(
    operation: str,
    estimated_tokens: int,
    user_id: str | None,
    now: float,
    token_bucket: int = 100,
    time_bucket_s: float = 300.0,
) -> str:
    tokens = estimated_tokens // token_bucket * token_bucket
    window = int(now // time_bucket_s)
    return f"{operation}_{tokens}_{window}_{user_id or 'anon'}"
