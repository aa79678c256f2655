"""Episodic memory: compacted interaction records in dated partitions."""

from __future__ import annotations

import asyncio
import json
import os
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

import aiofiles  # type: ignore
import aiofiles.os  # type: ignore

from agent_brain.models import InteractionRecord
from agent_brain.utils.logging import log_event

DATE_FORMAT = "%Y-%m-%d"


class EpisodicMemory:
    """Append-only JSON files under ``{root}/{agent_id}/{YYYY-MM-DD}/{id}.json``."""

    def __init__(self, root: str | Path, retention_days: int = 90) -> None:
        self.root = Path(root)
        self.retention_days = retention_days

    def path_for(self, agent_id: str, record: InteractionRecord) -> Path:
        day = datetime.fromtimestamp(record.timestamp, tz=timezone.utc).strftime(DATE_FORMAT)
        return self.root / agent_id / day / f"{record.id}.json"

    async def append(self, agent_id: str, record: InteractionRecord) -> Path:
        path = self.path_for(agent_id, record)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "w") as f:
            await f.write(json.dumps(record.compact(), separators=(",", ":")))
        return path

    async def read(self, agent_id: str, day: date | None = None) -> List[Dict[str, Any]]:
        """Return stored records for ``agent_id``, oldest partition first."""
        base = self.root / agent_id
        if not await aiofiles.os.path.isdir(base):
            return []
        days = [day.strftime(DATE_FORMAT)] if day else sorted(await aiofiles.os.listdir(base))
        records: List[Dict[str, Any]] = []
        for name in days:
            folder = base / name
            if not await aiofiles.os.path.isdir(folder):
                continue
            for fname in sorted(await aiofiles.os.listdir(folder)):
                async with aiofiles.open(folder / fname) as f:
                    records.append(json.loads(await f.read()))
        records.sort(key=lambda r: r.get("timestamp", 0))
        return records

    async def prune(self, now: datetime | None = None) -> int:
        """Delete partitions older than the retention window; return files removed."""
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=self.retention_days)).date()
        if not await aiofiles.os.path.isdir(self.root):
            return 0
        removed = 0
        for agent_dir in await aiofiles.os.listdir(self.root):
            agent_path = self.root / agent_dir
            if not await aiofiles.os.path.isdir(agent_path):
                continue
            for name in await aiofiles.os.listdir(agent_path):
                try:
                    day = datetime.strptime(name, DATE_FORMAT).date()
                except ValueError:
                    continue
                if day >= cutoff:
                    continue
                folder = agent_path / name
                for fname in await aiofiles.os.listdir(folder):
                    await aiofiles.os.remove(folder / fname)
                    removed += 1
                await aiofiles.os.rmdir(folder)
        if removed:
            await log_event("episodic_pruned", {"removed": removed, "cutoff": cutoff.isoformat()})
        return removed

    def start_pruner(self, interval: float) -> asyncio.Task:
        """Launch a background task that periodically prunes old partitions."""

        async def run() -> None:
            while True:
                await asyncio.sleep(interval)
                try:
                    await self.prune()
                except OSError as exc:
                    await log_event("episodic_prune_error", {"level": "error", "error": str(exc)})

        return asyncio.create_task(run())

    def __repr__(self) -> str:
        return f"EpisodicMemory(root={os.fspath(self.root)!r}, retention_days={self.retention_days})"


__all__ = ["EpisodicMemory"]
