"""Idempotent database schema creation."""

from __future__ import annotations

import aiosqlite

AI_LOGS_TABLE = """
CREATE TABLE IF NOT EXISTS ai_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    user_id TEXT NOT NULL,
    operation TEXT NOT NULL,
    model TEXT NOT NULL,
    request_tokens INTEGER NOT NULL,
    response_tokens INTEGER NOT NULL,
    cost_usd REAL NOT NULL,
    latency_ms REAL NOT NULL,
    confidence REAL NOT NULL,
    answerability REAL NOT NULL,
    citation_count INTEGER NOT NULL,
    cache_hit INTEGER NOT NULL,
    request_fingerprint TEXT NOT NULL,
    status TEXT NOT NULL
)
"""

AI_LOGS_CREATED_INDEX = """
CREATE INDEX IF NOT EXISTS idx_ai_logs_created_at ON ai_logs(created_at)
"""

AI_LOGS_USER_INDEX = """
CREATE INDEX IF NOT EXISTS idx_ai_logs_user_id ON ai_logs(user_id)
"""


async def initialize_metrics_db(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.execute(AI_LOGS_TABLE)
        await db.execute(AI_LOGS_CREATED_INDEX)
        await db.execute(AI_LOGS_USER_INDEX)
        await db.commit()
