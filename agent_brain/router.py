"""Provider router with capability filtering, fallback chain and result cache."""

from __future__ import annotations

import asyncio
import hashlib
import json
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Sequence, Tuple

from prometheus_client import Counter, Histogram

from agent_brain.errors import ConfigurationError, FatalRoutingError, TransientProviderFailure
from agent_brain.models import AttemptOutcome, Complexity, CompletionResult
from agent_brain.providers import ProviderFailure, ProviderOptions, ProviderRegistry, ProviderResponse
from agent_brain.utils.logging import log_event
from agent_brain.utils.tracing import async_span, tracer

ROUTER_LATENCY = Histogram(
    "agent_brain_router_latency_seconds",
    "Latency of provider attempts made by the router",
    ["provider", "result"],
)
ROUTER_FAILURES = Counter(
    "agent_brain_router_failures_total",
    "Total failed provider attempts",
    ["provider"],
)
CACHE_HITS = Counter(
    "agent_brain_router_cache_hits_total",
    "Completions served from the result cache",
)
PROVIDER_TOKENS = Counter(
    "agent_brain_provider_tokens_total",
    "Tokens exchanged with providers",
    ["provider", "direction"],
)


@dataclass
class _CacheEntry:
    result: CompletionResult
    expires_at: float


class ResultCache:
    """Short-lived map from request fingerprint to a successful result.

    Writes are idempotent overwrites, so concurrent actors need no locking.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}

    @staticmethod
    def key(prompt: str, **parts: object) -> str:
        payload = json.dumps({"prompt": prompt, **parts}, sort_keys=True, default=str)
        return hashlib.sha256(payload.encode()).hexdigest()

    def get(self, key: str) -> CompletionResult | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return entry.result

    def put(self, key: str, result: CompletionResult) -> None:
        if self.ttl <= 0:
            return
        now = self._clock()
        for stale in [k for k, e in self._entries.items() if e.expires_at <= now]:
            del self._entries[stale]
        self._entries[key] = _CacheEntry(result, now + self.ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ProviderRouter:
    """Select providers for a prompt and walk the fallback chain on failure."""

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        timeout: float = 30.0,
        cache_ttl: float = 300.0,
        baseline: float = 0.7,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.timeout = timeout
        self.baseline = baseline
        self.cache = ResultCache(cache_ttl, clock)

    def candidates(
        self,
        complexity: Complexity,
        preferred_provider: str | None = None,
        ranking: Sequence[Tuple[str, float]] | None = None,
    ) -> List[str]:
        """Ordered candidate ids for ``complexity``.

        Raises :class:`ConfigurationError` when no provider can serve the tier.
        """
        capable = self.registry.capable(complexity)
        if not capable:
            raise ConfigurationError(f"no provider configured for {complexity.value} tasks")
        scores = dict(ranking or ())
        # sorted() is stable, so equal scores keep declaration order
        ordered = sorted(capable, key=lambda pid: -scores.get(pid, self.baseline))
        if preferred_provider and preferred_provider in ordered:
            ordered.remove(preferred_provider)
            ordered.insert(0, preferred_provider)
        return ordered

    async def _attempt(
        self, provider_id: str, prompt: str, options: ProviderOptions
    ) -> ProviderResponse:
        provider = self.registry.get(provider_id)
        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(provider.invoke(prompt, options), timeout=self.timeout)
        except asyncio.TimeoutError:
            outcome = ProviderFailure(
                provider_id,
                f"timed out after {self.timeout}s",
                retryable=True,
                latency_ms=int((time.perf_counter() - start) * 1000),
            )
        except Exception as exc:  # noqa: BLE001
            outcome = ProviderFailure(
                provider_id,
                str(exc) or exc.__class__.__name__,
                retryable=True,
                latency_ms=int((time.perf_counter() - start) * 1000),
            )
        elapsed = time.perf_counter() - start
        if isinstance(outcome, ProviderFailure):
            ROUTER_LATENCY.labels(provider=provider_id, result="failure").observe(elapsed)
            ROUTER_FAILURES.labels(provider=provider_id).inc()
            raise TransientProviderFailure(outcome)
        ROUTER_LATENCY.labels(provider=provider_id, result="success").observe(elapsed)
        PROVIDER_TOKENS.labels(provider=provider_id, direction="in").inc(outcome.tokens_in)
        PROVIDER_TOKENS.labels(provider=provider_id, direction="out").inc(outcome.tokens_out)
        return outcome

    async def complete(
        self,
        prompt: str,
        *,
        complexity: Complexity,
        task_type: str,
        preferred_provider: str | None = None,
        fallback_chain: bool = True,
        ranking: Sequence[Tuple[str, float]] | None = None,
        options: ProviderOptions | None = None,
    ) -> CompletionResult:
        options = options or ProviderOptions()
        key = ResultCache.key(
            prompt,
            complexity=complexity.value,
            task_type=task_type,
            preferred=preferred_provider,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
        )
        hit = self.cache.get(key)
        if hit is not None:
            CACHE_HITS.inc()
            await log_event("router_cache_hit", {"provider": hit.provider, "task_type": task_type})
            return replace(hit, cached=True, self_healed=False, cost=0.0, attempts=[])

        order = self.candidates(complexity, preferred_provider, ranking)
        if preferred_provider and preferred_provider != order[0]:
            await log_event(
                "preferred_provider_ignored",
                {"level": "warning", "provider": preferred_provider, "complexity": complexity.value},
            )

        attempts: List[AttemptOutcome] = []
        async with async_span(
            "router.complete",
            tracer,
            attributes={"complexity": complexity.value, "task_type": task_type},
        ):
            for index, provider_id in enumerate(order):
                try:
                    response = await self._attempt(provider_id, prompt, options)
                except TransientProviderFailure as exc:
                    failure = exc.failure
                    attempts.append(
                        AttemptOutcome(
                            provider=provider_id,
                            success=False,
                            latency_ms=failure.latency_ms,
                            error=failure.reason,
                        )
                    )
                    await log_event(
                        "router_error",
                        {
                            "level": "warning",
                            "provider": provider_id,
                            "task_type": task_type,
                            "error": failure.reason,
                            "retryable": failure.retryable,
                        },
                    )
                    if not fallback_chain or not failure.retryable:
                        break
                    continue

                attempts.append(
                    AttemptOutcome(
                        provider=provider_id,
                        success=True,
                        cost=response.cost,
                        latency_ms=response.latency_ms,
                    )
                )
                result = CompletionResult(
                    provider=provider_id,
                    response=response.text,
                    cost=response.cost,
                    self_healed=index > 0,
                    tokens_in=response.tokens_in,
                    tokens_out=response.tokens_out,
                    latency_ms=response.latency_ms,
                    attempts=attempts,
                )
                self.cache.put(key, replace(result, attempts=[]))
                if result.self_healed:
                    await log_event(
                        "router_self_healed",
                        {"provider": provider_id, "task_type": task_type, "failed": index},
                    )
                return result

        raise FatalRoutingError(
            f"all {len(attempts)} provider attempt(s) failed for {complexity.value} task",
            attempts,
        )


__all__ = [
    "ProviderRouter",
    "ResultCache",
    "ROUTER_LATENCY",
    "ROUTER_FAILURES",
    "CACHE_HITS",
    "PROVIDER_TOKENS",
]
