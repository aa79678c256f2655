"""Request, result and interaction records passed between components."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Complexity(str, Enum):
    """Coarse task classification used to filter capable providers."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"

    @property
    def rank(self) -> int:
        return _COMPLEXITY_ORDER[self]

    def within(self, ceiling: "Complexity") -> bool:
        return self.rank <= ceiling.rank


_COMPLEXITY_ORDER = {
    Complexity.SIMPLE: 0,
    Complexity.MODERATE: 1,
    Complexity.COMPLEX: 2,
}


@dataclass
class AttemptOutcome:
    """One provider invocation inside a fallback chain."""

    provider: str
    success: bool
    cost: float = 0.0
    latency_ms: int = 0
    error: str | None = None


@dataclass
class CompletionResult:
    provider: str
    response: str
    cost: float = 0.0
    cached: bool = False
    self_healed: bool = False
    tokens_in: int = 0
    tokens_out: int = 0
    latency_ms: int = 0
    attempts: list[AttemptOutcome] = field(default_factory=list)
    agent_id: str | None = None
    memory_context_used: bool = False
    success: bool = True


class CompletionRequest(BaseModel):
    """Inbound "complete this task" request addressed to one agent."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prompt: str = Field(min_length=1)
    task_type: str = Field("general", alias="taskType")
    context: dict[str, Any] | None = None
    complexity: Complexity | None = None
    preferred_provider: str | None = Field(None, alias="preferredProvider")
    session_id: str | None = Field(None, alias="sessionId")


class InteractionRecord(BaseModel):
    """Immutable record of one request, shared by all memory tiers."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    agent_id: str
    prompt: str
    response: str | None = None
    task_type: str
    complexity: Complexity
    provider: str | None = None
    success: bool
    cost: float = 0.0
    latency_ms: int = 0
    timestamp: float = Field(default_factory=time.time)
    cached: bool = False
    self_healed: bool = False
    context: dict[str, Any] | None = None
    attempts: list[dict[str, Any]] = Field(default_factory=list)

    def compact(self) -> dict[str, Any]:
        """Return a JSON-ready dict without empty fields."""
        return self.model_dump(mode="json", exclude_none=True)


__all__ = [
    "Complexity",
    "AttemptOutcome",
    "CompletionResult",
    "CompletionRequest",
    "InteractionRecord",
]
