"""Daily provider usage ledger: calls, tokens and cost per provider per day."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict

import aiosqlite

from agent_brain.errors import StorageUnavailable

SCHEMA = """
CREATE TABLE IF NOT EXISTS provider_usage (
    day TEXT NOT NULL,
    provider TEXT NOT NULL,
    calls INTEGER NOT NULL DEFAULT 0,
    tokens_in INTEGER NOT NULL DEFAULT 0,
    tokens_out INTEGER NOT NULL DEFAULT 0,
    cost REAL NOT NULL DEFAULT 0,
    PRIMARY KEY (day, provider)
)
"""


def _today() -> date:
    return datetime.now(timezone.utc).date()


class UsageLedger:
    """SQLite rows keyed by UTC day and provider id.

    Shared by every agent; increments are single upserts so concurrent
    writers need no lock.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)

    async def _connect(self) -> aiosqlite.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.path)
        await db.execute(SCHEMA)
        return db

    async def record(
        self,
        provider: str,
        tokens_in: int,
        tokens_out: int,
        cost: float,
        day: date | None = None,
    ) -> None:
        day = day or _today()
        try:
            db = await self._connect()
            try:
                await db.execute(
                    """
                    INSERT INTO provider_usage (day, provider, calls, tokens_in, tokens_out, cost)
                    VALUES (?, ?, 1, ?, ?, ?)
                    ON CONFLICT (day, provider) DO UPDATE SET
                        calls = calls + 1,
                        tokens_in = tokens_in + excluded.tokens_in,
                        tokens_out = tokens_out + excluded.tokens_out,
                        cost = cost + excluded.cost
                    """,
                    (day.isoformat(), provider, tokens_in, tokens_out, cost),
                )
                await db.commit()
            finally:
                await db.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable("usage", str(exc)) from exc

    async def stats(self, days: int = 7, today: date | None = None) -> Dict[str, Dict[str, Any]]:
        """Totals per provider over the last ``days`` days, today included."""
        if days < 1:
            return {}
        today = today or _today()
        since = (today - timedelta(days=days - 1)).isoformat()
        try:
            db = await self._connect()
            try:
                async with db.execute(
                    """
                    SELECT provider, SUM(calls), SUM(tokens_in), SUM(tokens_out), SUM(cost)
                    FROM provider_usage
                    WHERE day >= ? AND day <= ?
                    GROUP BY provider
                    ORDER BY provider
                    """,
                    (since, today.isoformat()),
                ) as cur:
                    rows = await cur.fetchall()
            finally:
                await db.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable("usage", str(exc)) from exc
        return {
            provider: {
                "calls": int(calls),
                "inputTokens": int(tokens_in),
                "outputTokens": int(tokens_out),
                "cost": float(cost),
            }
            for provider, calls, tokens_in, tokens_out, cost in rows
        }


__all__ = ["UsageLedger"]
