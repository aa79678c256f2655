"""Memory tiers and the manager facade."""

from .aggregate import AgentState, AggregateStore
from .episodic import EpisodicMemory
from .manager import MemoryTierManager
from .semantic import SemanticMatch, SemanticMemory, hashed_embedding
from .usage import UsageLedger
from .working import WorkingMemory

__all__ = [
    "AgentState",
    "AggregateStore",
    "EpisodicMemory",
    "MemoryTierManager",
    "SemanticMatch",
    "SemanticMemory",
    "UsageLedger",
    "WorkingMemory",
    "hashed_embedding",
]
