"""Local echo provider used offline and as a last-resort fallback."""

from __future__ import annotations

from agent_brain.providers.base import Provider, ProviderOptions, ProviderResponse, ProviderFailure


class EchoProvider(Provider):
    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:
        text = f"{prompt} [local:{self.id}]"
        return self._response(text, start, tokens_in=len(prompt.split()), tokens_out=len(text.split()))
