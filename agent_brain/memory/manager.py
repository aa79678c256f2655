"""Facade over the four memory tiers with per-tier failure isolation."""

from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterator, List

import numpy as np
from prometheus_client import Counter, Histogram

from agent_brain.errors import StorageUnavailable
from agent_brain.memory.aggregate import AgentState, AggregateStore, Mutator
from agent_brain.memory.episodic import EpisodicMemory
from agent_brain.memory.semantic import SemanticMatch, SemanticMemory
from agent_brain.memory.usage import UsageLedger
from agent_brain.memory.working import WorkingMemory
from agent_brain.models import InteractionRecord

MEMORY_OP_COUNT = Counter(
    "agent_brain_memory_operations_total",
    "Total memory tier operations",
    ["tier", "op", "result"],
)
MEMORY_OP_LATENCY = Histogram(
    "agent_brain_memory_operation_seconds",
    "Time spent in memory tier operations",
    ["tier", "op"],
)


@contextmanager
def _measure(tier: str, op: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except StorageUnavailable:
        MEMORY_OP_COUNT.labels(tier=tier, op=op, result="error").inc()
        raise
    except (sqlite3.Error, OSError, ValueError) as exc:
        MEMORY_OP_COUNT.labels(tier=tier, op=op, result="error").inc()
        raise StorageUnavailable(tier, str(exc)) from exc
    else:
        MEMORY_OP_COUNT.labels(tier=tier, op=op, result="ok").inc()
    finally:
        MEMORY_OP_LATENCY.labels(tier=tier, op=op).observe(time.perf_counter() - start)


class MemoryTierManager:
    """Working, Semantic, Episodic and Aggregate tiers behind one handle.

    Misses are normal values. Backend failures surface as
    :class:`StorageUnavailable` naming the tier. The provider usage ledger
    rides along as a fifth, agent-independent store.
    """

    def __init__(
        self,
        working: WorkingMemory,
        semantic: SemanticMemory,
        episodic: EpisodicMemory,
        aggregate: AggregateStore,
        usage: UsageLedger,
        *,
        top_k: int = 5,
    ) -> None:
        self.working = working
        self.semantic = semantic
        self.episodic = episodic
        self.aggregate = aggregate
        self.usage = usage
        self.top_k = top_k

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.monotonic) -> "MemoryTierManager":
        return cls(
            WorkingMemory(settings.working_ttl, settings.working_window, clock),
            SemanticMemory(
                settings.semantic_path,
                dims=settings.semantic_dims,
                threshold=settings.semantic_threshold,
            ),
            EpisodicMemory(settings.episodes_dir, settings.episodic_retention_days),
            AggregateStore(settings.aggregate_path),
            UsageLedger(settings.usage_path),
            top_k=settings.semantic_top_k,
        )

    def embed(self, prompt: str, task_type: str) -> np.ndarray:
        return self.semantic.embed(SemanticMemory.text_for(prompt, task_type))

    async def recall_working(self, agent_id: str, scope_id: str) -> List[InteractionRecord]:
        with _measure("working", "recall"):
            return self.working.get(agent_id, scope_id)

    async def recall_semantic(
        self, agent_id: str, query_embedding: np.ndarray, top_k: int | None = None
    ) -> List[SemanticMatch]:
        with _measure("semantic", "recall"):
            return await self.semantic.recall(agent_id, query_embedding, top_k or self.top_k)

    async def append_working(self, agent_id: str, scope_id: str, record: InteractionRecord) -> None:
        with _measure("working", "append"):
            self.working.append(agent_id, scope_id, record)

    async def append_semantic(self, agent_id: str, record: InteractionRecord) -> None:
        with _measure("semantic", "append"):
            await self.semantic.append(agent_id, record)

    async def append_episodic(self, agent_id: str, record: InteractionRecord) -> None:
        with _measure("episodic", "append"):
            await self.episodic.append(agent_id, record)

    async def read_aggregate(self, agent_id: str) -> AgentState:
        with _measure("aggregate", "read"):
            return await self.aggregate.read(agent_id)

    async def write_aggregate(self, agent_id: str, mutator: Mutator) -> AgentState:
        with _measure("aggregate", "write"):
            return await self.aggregate.write(agent_id, mutator)

    async def prune_episodic(self, now: datetime | None = None) -> int:
        with _measure("episodic", "prune"):
            return await self.episodic.prune(now)

    async def list_agents(self) -> List[str]:
        with _measure("aggregate", "list"):
            return await self.aggregate.agent_ids()

    async def semantic_count(self, agent_id: str) -> int:
        with _measure("semantic", "count"):
            return await self.semantic.count(agent_id)

    async def record_usage(self, provider: str, tokens_in: int, tokens_out: int, cost: float) -> None:
        with _measure("usage", "record"):
            await self.usage.record(provider, tokens_in, tokens_out, cost)

    async def usage_stats(self, days: int = 7, today: date | None = None) -> Dict[str, Dict[str, Any]]:
        with _measure("usage", "read"):
            return await self.usage.stats(days, today)


__all__ = ["MemoryTierManager", "MEMORY_OP_COUNT", "MEMORY_OP_LATENCY"]
