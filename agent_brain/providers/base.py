"""Base provider interface for backend-specific adapters.

Adapters never raise for transport problems: every call resolves to either a
:class:`ProviderResponse` or a :class:`ProviderFailure` so the router can tell
"try the next provider" apart from "stop".
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agent_brain.models import Complexity

NON_RETRYABLE_STATUS = {400, 404, 413, 422}


@dataclass
class ProviderSpec:
    """Static description of one provider entry in the registry."""

    id: str
    kind: str
    model: str = ""
    max_complexity: Complexity = Complexity.MODERATE
    cost_per_1k_input: float = 0.0
    cost_per_1k_output: float = 0.0
    endpoint: str | None = None
    api_key_env: str | None = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderSpec":
        cost = data.get("cost") or {}
        if isinstance(cost, (int, float)):
            cost_in = cost_out = float(cost)
        else:
            cost_in = float(cost.get("input", 0.0) or 0.0)
            cost_out = float(cost.get("output", 0.0) or 0.0)
        pid = str(data.get("id") or data.get("name") or "")
        known = {"id", "name", "kind", "type", "model", "max_complexity", "cost", "endpoint", "api_key_env"}
        return cls(
            id=pid,
            kind=str(data.get("kind") or data.get("type") or pid).lower(),
            model=str(data.get("model") or ""),
            max_complexity=Complexity(data.get("max_complexity", "moderate")),
            cost_per_1k_input=cost_in,
            cost_per_1k_output=cost_out,
            endpoint=data.get("endpoint"),
            api_key_env=data.get("api_key_env"),
            extras={k: v for k, v in data.items() if k not in known},
        )

    def cost_for(self, tokens_in: int, tokens_out: int) -> float:
        return (tokens_in / 1000) * self.cost_per_1k_input + (tokens_out / 1000) * self.cost_per_1k_output


@dataclass
class ProviderOptions:
    max_tokens: int = 1000
    temperature: float = 0.7
    history: List[Dict[str, str]] = field(default_factory=list)
    context: Dict[str, Any] | None = None

    def messages(self, prompt: str) -> List[Dict[str, str]]:
        """Prior turns followed by the current prompt as chat messages."""
        return [*self.history, {"role": "user", "content": prompt}]


@dataclass
class ProviderResponse:
    text: str
    provider_id: str
    tokens_in: int = 0
    tokens_out: int = 0
    cost: float = 0.0
    latency_ms: int = 0


@dataclass
class ProviderFailure:
    provider_id: str
    reason: str
    retryable: bool = True
    status_code: int | None = None
    latency_ms: int = 0


class Provider:
    """Uniform interface to one AI backend."""

    def __init__(self, spec: ProviderSpec) -> None:
        self.spec = spec
        self.id = spec.id
        self.health_ok: bool = True
        self.failure_count: int = 0
        self.recent_latency_avg: float = 0.0

    def _record(self, latency_ms: int, failed: bool) -> None:
        alpha = 0.2
        if self.recent_latency_avg == 0.0:
            self.recent_latency_avg = float(latency_ms)
        else:
            self.recent_latency_avg = alpha * float(latency_ms) + (1 - alpha) * self.recent_latency_avg
        if failed:
            self.failure_count += 1
            self.health_ok = False
        else:
            self.health_ok = True

    def _response(self, text: str, start: float, tokens_in: int = 0, tokens_out: int = 0) -> ProviderResponse:
        latency_ms = int((time.monotonic() - start) * 1000)
        self._record(latency_ms, False)
        return ProviderResponse(
            text=text,
            provider_id=self.id,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost=self.spec.cost_for(tokens_in, tokens_out),
            latency_ms=latency_ms,
        )

    def _failure(
        self,
        reason: str,
        start: float,
        *,
        retryable: bool = True,
        status_code: int | None = None,
    ) -> ProviderFailure:
        latency_ms = int((time.monotonic() - start) * 1000)
        self._record(latency_ms, True)
        return ProviderFailure(
            provider_id=self.id,
            reason=reason,
            retryable=retryable,
            status_code=status_code,
            latency_ms=latency_ms,
        )

    def _api_key(self) -> str | None:
        if self.spec.extras.get("api_key"):
            return str(self.spec.extras["api_key"])
        if self.spec.api_key_env:
            return os.getenv(self.spec.api_key_env)
        return None

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> Any:
        """POST ``payload`` and return the decoded JSON body.

        Only connection errors are retried: once a request may have reached the
        backend it is never re-sent.
        """
        async with httpx.AsyncClient(timeout=timeout) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(3),
                wait=wait_exponential(multiplier=0.5),
                retry=retry_if_exception_type(httpx.ConnectError),
            ):
                with attempt:
                    resp = await client.post(url, json=payload, headers=headers or {})
        resp.raise_for_status()
        return resp.json()

    async def invoke(self, prompt: str, options: ProviderOptions) -> ProviderResponse | ProviderFailure:
        start = time.monotonic()
        try:
            return await self._invoke(prompt, options, start)
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            return self._failure(
                f"{self.id} API error: HTTP {code}",
                start,
                retryable=code not in NON_RETRYABLE_STATUS,
                status_code=code,
            )
        except RetryError as exc:
            return self._failure(str(exc.last_attempt.exception()), start)
        except httpx.HTTPError as exc:
            return self._failure(str(exc) or exc.__class__.__name__, start)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            return self._failure(f"malformed {self.id} response: {exc}", start)

    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:  # pragma: no cover - abstract
        raise NotImplementedError

    async def probe(self) -> bool:
        """Optional health probe."""
        result = await self.invoke("ping", ProviderOptions(max_tokens=1))
        return isinstance(result, ProviderResponse)

    def health(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.spec.kind,
            "maxComplexity": self.spec.max_complexity.value,
            "healthy": self.health_ok,
            "failureCount": self.failure_count,
            "latencyMsAvg": round(self.recent_latency_avg, 1),
        }


__all__ = [
    "Provider",
    "ProviderSpec",
    "ProviderOptions",
    "ProviderResponse",
    "ProviderFailure",
]
