"""Per-(task type, provider) score table persisted in the aggregate tier.

Scores start at a baseline, rise by a fixed delta on success and fall by a
larger one on failure. Nothing clamps them; only their relative order matters
to the router.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from agent_brain.memory import AgentState, MemoryTierManager


def score_key(task_type: str, provider: str) -> str:
    return f"{task_type}:{provider}"


class LearningEngine:
    def __init__(
        self,
        memory: MemoryTierManager,
        provider_ids: Sequence[str],
        *,
        baseline: float = 0.7,
        success_delta: float = 0.7,
        failure_delta: float = 1.0,
    ) -> None:
        self.memory = memory
        self.provider_ids = list(provider_ids)
        self.baseline = baseline
        self.success_delta = success_delta
        self.failure_delta = failure_delta

    def scores_for(self, state: AgentState, task_type: str) -> List[Tuple[str, float]]:
        """Rank providers from an already-loaded state, highest score first."""
        scored = [
            (pid, state.model_scores.get(score_key(task_type, pid), self.baseline))
            for pid in self.provider_ids
        ]
        return sorted(scored, key=lambda item: -item[1])

    async def rank(self, agent_id: str, task_type: str) -> List[Tuple[str, float]]:
        state = await self.memory.read_aggregate(agent_id)
        return self.scores_for(state, task_type)

    async def update(self, agent_id: str, task_type: str, provider: str, success: bool) -> float:
        """Apply one outcome and return the provider's new score."""
        key = score_key(task_type, provider)
        delta = self.success_delta if success else -self.failure_delta

        def apply(state: AgentState) -> None:
            state.model_scores[key] = state.model_scores.get(key, self.baseline) + delta

        state = await self.memory.write_aggregate(agent_id, apply)
        return state.model_scores[key]


__all__ = ["LearningEngine", "score_key"]
