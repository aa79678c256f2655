"""Working memory: short-lived recent-interaction windows per session scope."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from agent_brain.models import InteractionRecord


@dataclass
class WorkingEntry:
    records: List[InteractionRecord] = field(default_factory=list)
    last_update: float = 0.0
    expires_at: float = 0.0


class WorkingMemory:
    """In-process TTL store keyed ``agent:{id}:session:{scope}``.

    Every write refreshes the entry's TTL and trims it to the newest
    ``window`` records and sweeps expired scopes. Reads of a missing or
    expired key return ``[]``.
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        window: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.window = window
        self._clock = clock
        self._entries: Dict[str, WorkingEntry] = {}

    @staticmethod
    def key(agent_id: str, scope_id: str) -> str:
        return f"agent:{agent_id}:session:{scope_id}"

    def get(self, agent_id: str, scope_id: str) -> List[InteractionRecord]:
        key = self.key(agent_id, scope_id)
        entry = self._entries.get(key)
        if entry is None:
            return []
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return []
        return list(entry.records)

    def append(self, agent_id: str, scope_id: str, record: InteractionRecord) -> None:
        self.purge()
        now = self._clock()
        key = self.key(agent_id, scope_id)
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= now:
            entry = WorkingEntry()
            self._entries[key] = entry
        entry.records.append(record)
        del entry.records[: -self.window]
        entry.last_update = now
        entry.expires_at = now + self.ttl

    def purge(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["WorkingMemory", "WorkingEntry"]
