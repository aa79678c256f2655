import asyncio

import pytest

from agent_brain.learning import LearningEngine, score_key
from agent_brain.memory import MemoryTierManager


@pytest.fixture
def engine(settings):
    memory = MemoryTierManager.from_settings(settings)
    return LearningEngine(memory, ["a", "b", "c"])


def test_rank_returns_baseline_without_history(engine):
    ranking = asyncio.run(engine.rank("agent-1", "triage"))
    assert ranking == [("a", 0.7), ("b", 0.7), ("c", 0.7)]


def test_successes_increase_score_strictly(engine):
    async def run():
        return [await engine.update("agent-1", "triage", "a", True) for _ in range(5)]

    scores = asyncio.run(run())
    assert all(later > earlier for earlier, later in zip(scores, scores[1:]))
    assert scores[0] == pytest.approx(1.4)


def test_failures_decrease_score_below_baseline(engine):
    async def run():
        scores = [await engine.update("agent-1", "triage", "a", False) for _ in range(3)]
        return scores, await engine.rank("agent-1", "triage")

    scores, ranking = asyncio.run(run())
    assert all(later < earlier for earlier, later in zip(scores, scores[1:]))
    assert scores[0] == pytest.approx(-0.3)
    # unbounded below zero and ranked after every baseline provider
    assert scores[-1] == pytest.approx(-2.3)
    assert [pid for pid, _ in ranking] == ["b", "c", "a"]


def test_scores_are_scoped_by_task_type_and_agent(engine):
    async def run():
        await engine.update("agent-1", "triage", "a", True)
        return (
            await engine.rank("agent-1", "legal_reasoning"),
            await engine.rank("agent-2", "triage"),
        )

    other_task, other_agent = asyncio.run(run())
    assert dict(other_task)["a"] == 0.7
    assert dict(other_agent)["a"] == 0.7


def test_score_key_format():
    assert score_key("triage", "ollama") == "triage:ollama"


def test_custom_deltas(settings):
    memory = MemoryTierManager.from_settings(settings)
    engine = LearningEngine(memory, ["a"], baseline=1.0, success_delta=0.5, failure_delta=2.0)

    async def run():
        up = await engine.update("x", "t", "a", True)
        down = await engine.update("x", "t", "a", False)
        return up, down

    assert asyncio.run(run()) == (pytest.approx(1.5), pytest.approx(-0.5))
