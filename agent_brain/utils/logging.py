from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from typing import Any, MutableMapping

import aiofiles  # type: ignore
import aiofiles.os  # type: ignore
import structlog

logger = structlog.get_logger("agent_brain")

_event_log: dict[str, Any] = {"path": None, "max_bytes": None}


def configure_logging(
    level: str | int = logging.INFO,
    log_path: str | None = None,
    max_bytes: int | None = None,
) -> None:
    """Configure structlog to emit JSON lines through the stdlib root logger.

    ``log_path`` and ``max_bytes`` set the event log used by :func:`log_event`;
    when omitted it falls back to ``AGENT_BRAIN_LOG_PATH`` and
    ``AGENT_BRAIN_LOG_MAX_BYTES``.
    """
    _event_log["path"] = log_path
    _event_log["max_bytes"] = max_bytes
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format="%(message)s", force=True)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


async def _rotate(path: str, max_bytes: int) -> None:
    if await aiofiles.os.path.exists(path):
        stat = await aiofiles.os.stat(path)
        if stat.st_size > max_bytes:
            ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
            await aiofiles.os.rename(path, f"{path}.{ts}")


async def log_event(event: str, data: dict[str, Any]) -> None:
    """Emit a structured event and append it to the event log when enabled."""
    level = data.get("level", "info")
    fields = {k: v for k, v in data.items() if k != "level"}
    getattr(logger, level, logger.info)(event, **fields)

    log_dir = _event_log["path"] or os.getenv("AGENT_BRAIN_LOG_PATH")
    if not log_dir:
        return
    record: MutableMapping[str, Any] = {"event": event, **fields}
    record = structlog.processors.TimeStamper(key="timestamp", fmt="iso", utc=True)(
        logger, level, record
    )
    json_line = structlog.processors.JSONRenderer()(logger, level, record)

    os.makedirs(log_dir, exist_ok=True)
    max_bytes = _event_log["max_bytes"] or int(os.getenv("AGENT_BRAIN_LOG_MAX_BYTES", "5000000"))
    path = os.path.join(log_dir, "events.log")
    await _rotate(path, max_bytes)
    async with aiofiles.open(path, "a") as f:
        await f.write(str(json_line) + "\n")


__all__ = ["configure_logging", "log_event", "logger"]
