"""PostgreSQL-backed store for actor offense counters."""

from __future__ import annotations

from datetime import datetime

import asyncpg

from botwatch.detection.domain.reputation import (
    LIKE_COUNTER,
    OTHER_COUNTER,
    VIEW_COUNTER,
    FlagThresholds,
    ReputationStore,
    SuspiciousActivity,
    counter_for_kind,
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS user_suspicious_activity (
    user_id TEXT PRIMARY KEY,
    like_spam_count INTEGER NOT NULL DEFAULT 0,
    view_spam_count INTEGER NOT NULL DEFAULT 0,
    other_spam_count INTEGER NOT NULL DEFAULT 0,
    last_suspicious_activity TIMESTAMPTZ,
    is_flagged BOOLEAN NOT NULL DEFAULT FALSE
)
"""

_COLUMNS = "user_id, like_spam_count, view_spam_count, other_spam_count, last_suspicious_activity, is_flagged"

# Column names are interpolated into SQL; only these values are allowed
_INCREMENT_SQL = {
    column: f"""
        INSERT INTO user_suspicious_activity (user_id, {column}, last_suspicious_activity)
        VALUES ($1, 1, $2)
        ON CONFLICT (user_id)
        DO UPDATE SET {column} = user_suspicious_activity.{column} + 1,
                      last_suspicious_activity = EXCLUDED.last_suspicious_activity
        RETURNING {_COLUMNS}
        """
    for column in (LIKE_COUNTER, VIEW_COUNTER, OTHER_COUNTER)
}


def _row_to_activity(row: asyncpg.Record) -> SuspiciousActivity:
    return SuspiciousActivity(
        actor_id=str(row["user_id"]),
        like_spam_count=int(row["like_spam_count"]),
        view_spam_count=int(row["view_spam_count"]),
        other_spam_count=int(row["other_spam_count"]),
        last_suspicious_activity=row["last_suspicious_activity"],
        is_flagged=bool(row["is_flagged"]),
    )


async def ensure_schema(pool: asyncpg.Pool) -> None:
    await pool.execute(SCHEMA_SQL)


class PostgresReputationStore(ReputationStore):
    """Each operation is a single statement, so concurrent offenses never lose updates."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def increment_spam_counter(self, actor_id: str, kind: str, at: datetime) -> SuspiciousActivity:
        row = await self._pool.fetchrow(_INCREMENT_SQL[counter_for_kind(kind)], actor_id, at)
        if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
            raise RuntimeError("Failed to upsert user_suspicious_activity")
        return _row_to_activity(row)

    async def flag_if_over_threshold(self, actor_id: str, thresholds: FlagThresholds) -> bool:
        row = await self._pool.fetchrow(
            """
            UPDATE user_suspicious_activity
            SET is_flagged = is_flagged OR like_spam_count > $2 OR view_spam_count > $3
            WHERE user_id = $1
            RETURNING is_flagged
            """,
            actor_id,
            thresholds.like_spam_limit,
            thresholds.view_spam_limit,
        )
        return bool(row["is_flagged"]) if row is not None else False

    async def get_activity(self, actor_id: str) -> SuspiciousActivity | None:
        row = await self._pool.fetchrow(
            f"SELECT {_COLUMNS} FROM user_suspicious_activity WHERE user_id = $1",
            actor_id,
        )
        if row is None:
            return None
        return _row_to_activity(row)
