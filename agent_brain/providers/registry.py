"""Provider registry mapping provider identity to adapter and metadata."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence, Type

from agent_brain.models import Complexity
from agent_brain.providers.anthropic import AnthropicProvider
from agent_brain.providers.base import Provider, ProviderSpec
from agent_brain.providers.echo import EchoProvider
from agent_brain.providers.google import GoogleProvider
from agent_brain.providers.huggingface import HuggingFaceProvider
from agent_brain.providers.ollama import OllamaProvider
from agent_brain.providers.openai import OpenAIProvider

PROVIDER_KINDS: Dict[str, Type[Provider]] = {
    "ollama": OllamaProvider,
    "openai": OpenAIProvider,
    "openai_compatible": OpenAIProvider,
    "mistral": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
    "huggingface": HuggingFaceProvider,
    "echo": EchoProvider,
}

# Declaration order doubles as the routing tie-break.
DEFAULT_PROVIDERS: List[Dict[str, Any]] = [
    {
        "id": "ollama",
        "model": "llama3.1",
        "max_complexity": "moderate",
        "cost": {"input": 0.0, "output": 0.0},
    },
    {
        "id": "mistral",
        "model": "mistral-large-latest",
        "max_complexity": "moderate",
        "cost": {"input": 0.008, "output": 0.024},
        "api_key_env": "MISTRAL_API_KEY",
    },
    {
        "id": "google",
        "model": "gemini-pro",
        "max_complexity": "moderate",
        "cost": {"input": 0.0005, "output": 0.0015},
        "api_key_env": "GOOGLE_API_KEY",
    },
    {
        "id": "huggingface",
        "model": "mistralai/Mixtral-8x7B-Instruct-v0.1",
        "max_complexity": "simple",
        "cost": {"input": 0.0002, "output": 0.0002},
        "api_key_env": "HUGGINGFACE_API_TOKEN",
    },
    {
        "id": "anthropic",
        "model": "claude-3-opus-20240229",
        "max_complexity": "complex",
        "cost": {"input": 0.015, "output": 0.075},
        "api_key_env": "ANTHROPIC_API_KEY",
    },
    {
        "id": "openai",
        "model": "gpt-4-turbo",
        "max_complexity": "complex",
        "cost": {"input": 0.03, "output": 0.06},
        "api_key_env": "OPENAI_API_KEY",
    },
]


def _build_provider(spec: ProviderSpec) -> Provider:
    cls = PROVIDER_KINDS.get(spec.kind)
    if cls is None:
        raise ValueError(f"Unknown provider kind: {spec.kind}")
    return cls(spec)


class ProviderRegistry:
    """Ordered collection of providers; the router only ever sees identities."""

    def __init__(self, providers: Iterable[Provider] = ()) -> None:
        self._providers: Dict[str, Provider] = {}
        for provider in providers:
            self.register(provider)

    @classmethod
    def from_dicts(cls, entries: Sequence[Dict[str, Any]]) -> "ProviderRegistry":
        return cls(_build_provider(ProviderSpec.from_dict(entry)) for entry in entries)

    @classmethod
    def from_file(cls, path: str | Path) -> "ProviderRegistry":
        data = json.loads(Path(path).read_text())
        entries = data.get("providers", []) if isinstance(data, dict) else data
        return cls.from_dicts(entries)

    @classmethod
    def from_settings(cls, settings) -> "ProviderRegistry":
        if settings.providers_file:
            return cls.from_file(settings.providers_file)
        return cls.from_dicts(DEFAULT_PROVIDERS)

    def register(self, provider: Provider) -> None:
        if not provider.id:
            raise ValueError("provider id is required")
        if provider.id in self._providers:
            raise ValueError(f"duplicate provider id: {provider.id}")
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> Provider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise KeyError(f"Unknown provider: {provider_id}") from None

    def ids(self) -> List[str]:
        return list(self._providers)

    def capable(self, complexity: Complexity) -> List[str]:
        """Provider ids whose ceiling covers ``complexity``, in declaration order."""
        return [
            pid
            for pid, provider in self._providers.items()
            if complexity.within(provider.spec.max_complexity)
        ]

    async def health(self, probe: bool = False) -> List[Dict[str, Any]]:
        """Health snapshot per provider; ``probe`` pings every backend first."""
        if probe:
            await asyncio.gather(*(p.probe() for p in self._providers.values()))
        return [p.health() for p in self._providers.values()]

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)


__all__ = ["ProviderRegistry", "PROVIDER_KINDS", "DEFAULT_PROVIDERS"]
