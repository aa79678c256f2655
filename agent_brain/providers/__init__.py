"""Provider adapters and the registry that resolves them by identity."""

from .base import (
    Provider,
    ProviderFailure,
    ProviderOptions,
    ProviderResponse,
    ProviderSpec,
)
from .registry import DEFAULT_PROVIDERS, PROVIDER_KINDS, ProviderRegistry

__all__ = [
    "Provider",
    "ProviderFailure",
    "ProviderOptions",
    "ProviderResponse",
    "ProviderSpec",
    "ProviderRegistry",
    "DEFAULT_PROVIDERS",
    "PROVIDER_KINDS",
]
