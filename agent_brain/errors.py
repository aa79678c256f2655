"""Error taxonomy shared by the router, memory tiers and agent actor."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .models import AttemptOutcome
    from .providers.base import ProviderFailure


class AgentBrainError(Exception):
    """Base class for all agent-brain errors."""


class TransientProviderFailure(AgentBrainError):
    """A provider attempt failed in a way another provider may not."""

    def __init__(self, failure: "ProviderFailure") -> None:
        super().__init__(f"{failure.provider_id}: {failure.reason}")
        self.failure = failure


class ConfigurationError(AgentBrainError):
    """No provider is set up to serve the requested complexity tier."""

    kind = "configuration"


class FatalRoutingError(AgentBrainError):
    """Every candidate provider failed; carries the recorded attempts."""

    kind = "routing"

    def __init__(self, message: str, attempts: Sequence["AttemptOutcome"] = ()) -> None:
        super().__init__(message)
        self.attempts = list(attempts)


class StorageUnavailable(AgentBrainError):
    """A memory tier could not be read or written."""

    def __init__(self, tier: str, reason: str) -> None:
        super().__init__(f"{tier} tier unavailable: {reason}")
        self.tier = tier
        self.reason = reason


__all__ = [
    "AgentBrainError",
    "TransientProviderFailure",
    "ConfigurationError",
    "FatalRoutingError",
    "StorageUnavailable",
]
