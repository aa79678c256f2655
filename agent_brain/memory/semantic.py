"""Semantic memory: append-only embeddings recalled by cosine similarity."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List

import aiosqlite
import numpy as np

from agent_brain.models import InteractionRecord

_TOKEN_RE = re.compile(r"\w+")

SCHEMA = """
CREATE TABLE IF NOT EXISTS semantic_memory (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    agent_id TEXT NOT NULL,
    interaction_id TEXT NOT NULL,
    vector BLOB NOT NULL,
    metadata TEXT NOT NULL
)
"""
INDEX = "CREATE INDEX IF NOT EXISTS idx_semantic_agent ON semantic_memory(agent_id)"


def hashed_embedding(text: str, dims: int) -> np.ndarray:
    """Return a deterministic, L2-normalised bag-of-words vector for ``text``."""
    vec = np.zeros(dims, dtype="float32")
    for token in _TOKEN_RE.findall(text.lower()):
        digest = hashlib.sha256(token.encode()).digest()
        idx = int.from_bytes(digest[:4], "big") % dims
        vec[idx] += 1.0 if digest[4] & 1 else -1.0
    norm = np.linalg.norm(vec)
    if norm:
        vec /= norm
    return vec


@dataclass
class SemanticMatch:
    interaction_id: str
    similarity: float
    metadata: Dict[str, Any]


class SemanticMemory:
    """SQLite-backed vector store, one row per interaction."""

    def __init__(
        self,
        path: str | Path,
        *,
        dims: int = 256,
        threshold: float = 0.75,
        embed: Callable[[str, int], np.ndarray] | None = None,
    ) -> None:
        self.path = str(path)
        self.dims = dims
        self.threshold = threshold
        self._embed = embed or hashed_embedding

    def embed(self, text: str) -> np.ndarray:
        return np.asarray(self._embed(text, self.dims), dtype="float32")

    @staticmethod
    def text_for(prompt: str, task_type: str) -> str:
        return f"{task_type} {prompt}"

    async def _connect(self) -> aiosqlite.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.path)
        await db.execute(SCHEMA)
        await db.execute(INDEX)
        return db

    async def append(self, agent_id: str, record: InteractionRecord) -> None:
        vector = self.embed(self.text_for(record.prompt, record.task_type))
        metadata = {
            "agent_id": agent_id,
            "interaction_id": record.id,
            "task_type": record.task_type,
            "provider": record.provider,
            "success": record.success,
            "cost": record.cost,
            "timestamp": record.timestamp,
            "prompt": record.prompt[:200],
            "response": (record.response or "")[:200],
        }
        db = await self._connect()
        try:
            await db.execute(
                "INSERT INTO semantic_memory (agent_id, interaction_id, vector, metadata) VALUES (?, ?, ?, ?)",
                (agent_id, record.id, vector.tobytes(), json.dumps(metadata)),
            )
            await db.commit()
        finally:
            await db.close()

    async def recall(self, agent_id: str, query: np.ndarray, top_k: int = 5) -> List[SemanticMatch]:
        """Matches at or above ``threshold``, most similar first, at most ``top_k``."""
        db = await self._connect()
        try:
            async with db.execute(
                "SELECT interaction_id, vector, metadata FROM semantic_memory WHERE agent_id = ? ORDER BY id",
                (agent_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        finally:
            await db.close()
        if not rows:
            return []

        query = np.asarray(query, dtype="float32")
        qnorm = np.linalg.norm(query)
        if not qnorm:
            return []
        matrix = np.vstack([np.frombuffer(row[1], dtype="float32") for row in rows])
        norms = np.linalg.norm(matrix, axis=1)
        norms[norms == 0] = 1.0
        sims = (matrix @ query) / (norms * qnorm)
        # stable sort keeps insertion order among equal similarities
        order = np.argsort(-sims, kind="stable")
        matches: List[SemanticMatch] = []
        for i in order:
            if sims[i] < self.threshold or len(matches) >= top_k:
                break
            matches.append(SemanticMatch(rows[i][0], float(sims[i]), json.loads(rows[i][2])))
        return matches

    async def count(self, agent_id: str) -> int:
        db = await self._connect()
        try:
            async with db.execute(
                "SELECT COUNT(*) FROM semantic_memory WHERE agent_id = ?", (agent_id,)
            ) as cursor:
                row = await cursor.fetchone()
        finally:
            await db.close()
        return int(row[0]) if row else 0


__all__ = ["SemanticMemory", "SemanticMatch", "hashed_embedding"]
