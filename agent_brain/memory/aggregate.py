"""Aggregate tier: one counters-and-scores record per agent identity."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Callable, Dict

import aiosqlite
from pydantic import BaseModel, Field

from agent_brain.errors import StorageUnavailable

SCHEMA = "CREATE TABLE IF NOT EXISTS agent_state (agent_id TEXT PRIMARY KEY, state TEXT NOT NULL)"


class AgentState(BaseModel):
    """Durable per-agent record; counters only grow, scores move both ways."""

    agent_id: str
    total_interactions: int = 0
    total_cost: float = 0.0
    provider_usage: Dict[str, int] = Field(default_factory=dict)
    task_type_usage: Dict[str, int] = Field(default_factory=dict)
    model_scores: Dict[str, float] = Field(default_factory=dict)
    session_id: str | None = None
    created_at: float | None = None
    last_error: str | None = None


Mutator = Callable[[AgentState], "AgentState | None"]


class AggregateStore:
    """SQLite-backed store with per-agent serialized read-modify-write."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, agent_id: str) -> asyncio.Lock:
        return self._locks.setdefault(agent_id, asyncio.Lock())

    async def _connect(self) -> aiosqlite.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.path)
        await db.execute(SCHEMA)
        return db

    async def _load(self, db: aiosqlite.Connection, agent_id: str) -> AgentState:
        async with db.execute("SELECT state FROM agent_state WHERE agent_id = ?", (agent_id,)) as cur:
            row = await cur.fetchone()
        if row is None:
            return AgentState(agent_id=agent_id)
        return AgentState.model_validate_json(row[0])

    async def read(self, agent_id: str) -> AgentState:
        try:
            db = await self._connect()
            try:
                return await self._load(db, agent_id)
            finally:
                await db.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable("aggregate", str(exc)) from exc

    async def write(self, agent_id: str, mutator: Mutator) -> AgentState:
        """Apply ``mutator`` to the stored state under the agent's lock.

        The mutator may edit the state in place or return a replacement.
        """
        async with self._lock(agent_id):
            try:
                db = await self._connect()
                try:
                    state = await self._load(db, agent_id)
                    updated = mutator(state) or state
                    await db.execute(
                        "INSERT OR REPLACE INTO agent_state (agent_id, state) VALUES (?, ?)",
                        (agent_id, updated.model_dump_json()),
                    )
                    await db.commit()
                    return updated
                finally:
                    await db.close()
            except (sqlite3.Error, OSError) as exc:
                raise StorageUnavailable("aggregate", str(exc)) from exc

    async def agent_ids(self) -> list[str]:
        try:
            db = await self._connect()
            try:
                async with db.execute("SELECT agent_id FROM agent_state ORDER BY agent_id") as cur:
                    rows = await cur.fetchall()
            finally:
                await db.close()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable("aggregate", str(exc)) from exc
        return [row[0] for row in rows]


__all__ = ["AgentState", "AggregateStore"]
