"""SQLite-backed append-only analytics sink."""

from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

from rag_core.observability.metrics import MetricsRecord
from rag_core.storage.migrations import initialize_metrics_db

_COLUMNS = (
    "user_id",
    "operation",
    "model",
    "request_tokens",
    "response_tokens",
    "cost_usd",
    "latency_ms",
    "confidence",
    "answerability",
    "citation_count",
    "cache_hit",
    "request_fingerprint",
    "status",
)


class SQLiteMetricsSink:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    async def initialize(self) -> None:
        await initialize_metrics_db(self._db_path)

    async def log_metrics(self, record: MetricsRecord) -> None:
        values = record.as_dict()
        values["cache_hit"] = int(values["cache_hit"])
        placeholders = ", ".join("?" for _ in range(len(_COLUMNS) + 1))
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                f"INSERT INTO ai_logs (created_at, {', '.join(_COLUMNS)}) VALUES ({placeholders})",
                (datetime.now(timezone.utc).isoformat(), *(values[c] for c in _COLUMNS)),
            )
            await db.commit()

    async def get_recent(self, limit: int = 100) -> list[MetricsRecord]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM ai_logs ORDER BY id DESC LIMIT ?", (limit,)
            ) as cursor:
                rows = await cursor.fetchall()
                return [self._row_to_record(row) for row in rows]

    async def total_cost(self, user_id: str | None = None) -> float:
        query = "SELECT COALESCE(SUM(cost_usd), 0) FROM ai_logs"
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        async with aiosqlite.connect(self._db_path) as db:
            async with db.execute(query, params) as cursor:
                row = await cursor.fetchone()
                return float(row[0])

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> MetricsRecord:
        data = {c: row[c] for c in _COLUMNS}
        data["cache_hit"] = bool(data["cache_hit"])
        return MetricsRecord(**data)
