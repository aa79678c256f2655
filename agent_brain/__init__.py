"""Persistent per-agent orchestrator with provider fallback and tiered memory."""

from .agent import ActorState, AgentActor, AgentDirectory, agent_id_for, build_runtime
from .config import Settings
from .errors import (
    AgentBrainError,
    ConfigurationError,
    FatalRoutingError,
    StorageUnavailable,
    TransientProviderFailure,
)
from .learning import LearningEngine
from .memory import MemoryTierManager
from .models import Complexity, CompletionRequest, CompletionResult, InteractionRecord
from .router import ProviderRouter

__all__ = [
    "ActorState",
    "AgentActor",
    "AgentDirectory",
    "agent_id_for",
    "build_runtime",
    "Settings",
    "AgentBrainError",
    "ConfigurationError",
    "FatalRoutingError",
    "StorageUnavailable",
    "TransientProviderFailure",
    "LearningEngine",
    "MemoryTierManager",
    "Complexity",
    "CompletionRequest",
    "CompletionResult",
    "InteractionRecord",
    "ProviderRouter",
]
