"""Per-identity agent actor and the directory that resolves names to actors."""

from __future__ import annotations

import asyncio
import hashlib
import time
import uuid
from collections import deque
from dataclasses import asdict
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Sequence, TypeVar

from agent_brain.config import Settings
from agent_brain.context import analyze_prompt, build_history, infer_complexity
from agent_brain.errors import ConfigurationError, FatalRoutingError, StorageUnavailable
from agent_brain.learning import LearningEngine
from agent_brain.memory import AgentState, MemoryTierManager
from agent_brain.models import (
    AttemptOutcome,
    Complexity,
    CompletionRequest,
    CompletionResult,
    InteractionRecord,
)
from agent_brain.providers import ProviderOptions, ProviderRegistry
from agent_brain.router import ProviderRouter
from agent_brain.utils.logging import log_event
from agent_brain.utils.tracing import async_span, tracer

T = TypeVar("T")


class ActorState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def agent_id_for(name: str) -> str:
    """Stable identity derived from an agent name."""
    return hashlib.sha256(name.encode()).hexdigest()


class AgentActor:
    """One logical actor per agent identity.

    Requests are processed one at a time under ``_lock``; the actor returns
    to ``IDLE`` after every request whatever the outcome.
    """

    def __init__(
        self,
        name: str,
        *,
        router: ProviderRouter,
        memory: MemoryTierManager,
        learning: LearningEngine,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        context_messages: int = 10,
    ) -> None:
        self.name = name
        self.agent_id = agent_id_for(name)
        self.router = router
        self.memory = memory
        self.learning = learning
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.context_messages = context_messages
        self.state = ActorState.IDLE
        self.transitions: Deque[ActorState] = deque(maxlen=32)
        self.last_error: str | None = None
        self.storage_errors: List[str] = []
        self._lock = asyncio.Lock()

    def _set_state(self, state: ActorState) -> None:
        self.state = state
        self.transitions.append(state)

    @property
    def degraded(self) -> bool:
        return self.last_error is not None or bool(self.storage_errors)

    async def _tier(self, tier: str, op: Awaitable[T], default: T | None = None) -> T | None:
        """Run one memory operation; a tier outage is logged, never raised."""
        try:
            return await op
        except StorageUnavailable as exc:
            self.storage_errors.append(tier)
            await log_event(
                "memory_tier_unavailable",
                {"level": "error", "agent_id": self.agent_id, "tier": tier, "error": exc.reason},
            )
            return default

    async def _load_state(self) -> AgentState:
        state = await self._tier("aggregate", self.memory.read_aggregate(self.agent_id))
        if state is None:
            return AgentState(agent_id=self.agent_id, session_id=uuid.uuid4().hex)
        if state.session_id is None:

            def init(s: AgentState) -> None:
                s.session_id = s.session_id or uuid.uuid4().hex
                s.created_at = s.created_at or time.time()

            created = await self._tier("aggregate", self.memory.write_aggregate(self.agent_id, init))
            if created is None:
                state.session_id = uuid.uuid4().hex
                return state
            await log_event("agent_created", {"agent_id": self.agent_id, "name": self.name})
            return created
        return state

    async def _learn(self, task_type: str, attempts: Sequence[AttemptOutcome]) -> None:
        for attempt in attempts:
            await self._tier(
                "aggregate",
                self.learning.update(self.agent_id, task_type, attempt.provider, attempt.success),
            )

    def _count(self, record: InteractionRecord) -> Callable[[AgentState], None]:
        def apply(state: AgentState) -> None:
            state.total_interactions += 1
            state.total_cost += record.cost
            state.task_type_usage[record.task_type] = state.task_type_usage.get(record.task_type, 0) + 1
            if record.success and record.provider and not record.cached:
                state.provider_usage[record.provider] = state.provider_usage.get(record.provider, 0) + 1
            if not record.success:
                state.last_error = record.response or "request failed"

        return apply

    async def _persist(self, record: InteractionRecord, scope_id: str) -> None:
        await self._tier("working", self.memory.append_working(self.agent_id, scope_id, record))
        await self._tier("semantic", self.memory.append_semantic(self.agent_id, record))
        await self._tier("episodic", self.memory.append_episodic(self.agent_id, record))
        await self._tier("aggregate", self.memory.write_aggregate(self.agent_id, self._count(record)))

    async def _record_failure(
        self, request: CompletionRequest, complexity: Complexity, exc: FatalRoutingError
    ) -> None:
        record = InteractionRecord(
            agent_id=self.agent_id,
            prompt=request.prompt,
            response=str(exc),
            task_type=request.task_type,
            complexity=complexity,
            success=False,
            context=request.context,
            attempts=[asdict(a) for a in exc.attempts],
        )
        await self._tier("episodic", self.memory.append_episodic(self.agent_id, record))
        await self._tier("aggregate", self.memory.write_aggregate(self.agent_id, self._count(record)))

    async def handle(self, request: CompletionRequest) -> CompletionResult:
        async with self._lock:
            self._set_state(ActorState.PROCESSING)
            self.storage_errors = []
            try:
                async with async_span("agent.handle", tracer, attributes={"task_type": request.task_type}):
                    result = await self._process(request)
            except (ConfigurationError, FatalRoutingError) as exc:
                self.last_error = str(exc)
                self._set_state(ActorState.FAILED)
                raise
            else:
                self.last_error = None
                self._set_state(ActorState.COMPLETED)
                return result
            finally:
                self._set_state(ActorState.IDLE)

    async def _process(self, request: CompletionRequest) -> CompletionResult:
        state = await self._load_state()
        task_type = request.task_type
        complexity = request.complexity or infer_complexity(task_type)
        scope_id = request.session_id or state.session_id or self.agent_id

        recent = await self._tier("working", self.memory.recall_working(self.agent_id, scope_id), [])
        similar = await self._tier(
            "semantic",
            self.memory.recall_semantic(self.agent_id, self.memory.embed(request.prompt, task_type)),
            [],
        )
        ranking = await self._tier("aggregate", self.learning.rank(self.agent_id, task_type))
        if ranking is None:
            ranking = self.learning.scores_for(state, task_type)

        context: Dict[str, Any] = {**(request.context or {}), **analyze_prompt(request.prompt)}
        options = ProviderOptions(
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            history=build_history(recent, similar, self.context_messages),
            context=context,
        )
        try:
            result = await self.router.complete(
                request.prompt,
                complexity=complexity,
                task_type=task_type,
                preferred_provider=request.preferred_provider,
                ranking=ranking,
                options=options,
            )
        except FatalRoutingError as exc:
            await self._learn(task_type, exc.attempts)
            await self._record_failure(request, complexity, exc)
            await log_event(
                "agent_request_failed",
                {"level": "error", "agent_id": self.agent_id, "task_type": task_type, "error": str(exc)},
            )
            raise

        record = InteractionRecord(
            agent_id=self.agent_id,
            prompt=request.prompt,
            response=result.response,
            task_type=task_type,
            complexity=complexity,
            provider=result.provider,
            success=True,
            cost=result.cost,
            latency_ms=result.latency_ms,
            cached=result.cached,
            self_healed=result.self_healed,
            context=request.context,
            attempts=[asdict(a) for a in result.attempts],
        )
        await self._persist(record, scope_id)
        if not result.cached:
            await self._tier(
                "usage",
                self.memory.record_usage(
                    result.provider, result.tokens_in, result.tokens_out, result.cost
                ),
            )
        # cache hits invoked no provider, so there is nothing to learn from
        await self._learn(task_type, result.attempts)

        result.agent_id = self.agent_id
        result.memory_context_used = bool(recent or similar)
        await log_event(
            "agent_request_completed",
            {
                "agent_id": self.agent_id,
                "task_type": task_type,
                "provider": result.provider,
                "cached": result.cached,
                "self_healed": result.self_healed,
            },
        )
        return result

    async def stats(self) -> Dict[str, Any]:
        state = await self.memory.read_aggregate(self.agent_id)
        return {
            "agentId": self.agent_id,
            "stats": {
                "totalInteractions": state.total_interactions,
                "totalCost": state.total_cost,
                "providerUsage": dict(state.provider_usage),
                "taskTypeUsage": dict(state.task_type_usage),
            },
            "modelScores": dict(state.model_scores),
            "createdAt": state.created_at,
        }

    def health(self) -> Dict[str, str]:
        return {"status": "degraded" if self.degraded else "healthy", "agentId": self.agent_id}


class AgentDirectory:
    """Deterministic name to actor mapping; actors are created lazily."""

    def __init__(
        self,
        router: ProviderRouter,
        memory: MemoryTierManager,
        learning: LearningEngine,
        *,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        context_messages: int = 10,
    ) -> None:
        self.router = router
        self.memory = memory
        self.learning = learning
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.context_messages = context_messages
        self._actors: Dict[str, AgentActor] = {}

    def get(self, name: str) -> AgentActor:
        agent_id = agent_id_for(name)
        actor = self._actors.get(agent_id)
        if actor is None:
            actor = AgentActor(
                name,
                router=self.router,
                memory=self.memory,
                learning=self.learning,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                context_messages=self.context_messages,
            )
            self._actors[agent_id] = actor
        return actor

    async def complete(self, name: str, request: CompletionRequest) -> CompletionResult:
        return await self.get(name).handle(request)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and agent_id_for(name) in self._actors

    def __len__(self) -> int:
        return len(self._actors)


def build_runtime(settings: Settings | None = None, registry: ProviderRegistry | None = None) -> AgentDirectory:
    """Wire registry, router, memory and learning from ``settings``."""
    settings = settings or Settings.load()
    registry = registry or ProviderRegistry.from_settings(settings)
    router = ProviderRouter(
        registry,
        timeout=settings.router_timeout,
        cache_ttl=settings.cache_ttl,
        baseline=settings.score_baseline,
    )
    memory = MemoryTierManager.from_settings(settings)
    learning = LearningEngine(
        memory,
        registry.ids(),
        baseline=settings.score_baseline,
        success_delta=settings.score_success_delta,
        failure_delta=settings.score_failure_delta,
    )
    return AgentDirectory(
        router,
        memory,
        learning,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
        context_messages=settings.context_messages,
    )


__all__ = [
    "ActorState",
    "AgentActor",
    "AgentDirectory",
    "agent_id_for",
    "build_runtime",
]
