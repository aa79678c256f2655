"""OpenAI-compatible provider (OpenAI, Mistral, custom gateways)."""

from __future__ import annotations

from typing import Any, Dict

from agent_brain.providers.base import Provider, ProviderOptions, ProviderResponse, ProviderFailure

DEFAULT_ENDPOINTS = {
    "openai": "https://api.openai.com/v1",
    "mistral": "https://api.mistral.ai/v1",
}
DEFAULT_MODELS = {
    "openai": "gpt-4-turbo",
    "mistral": "mistral-medium",
}


class OpenAIProvider(Provider):
    def _endpoint(self) -> str:
        base = self.spec.endpoint or DEFAULT_ENDPOINTS.get(self.spec.kind, DEFAULT_ENDPOINTS["openai"])
        if base.endswith("/chat/completions"):
            return base
        return base.rstrip("/") + "/chat/completions"

    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:
        api_key = self._api_key()
        if not api_key and not self.spec.extras.get("allow_unauthenticated", False):
            return self._failure("missing_api_key", start)

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        payload: Dict[str, Any] = {
            "model": self.spec.model or DEFAULT_MODELS.get(self.spec.kind, "gpt-4-turbo"),
            "messages": options.messages(prompt),
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        data = await self._post_json(self._endpoint(), payload, headers)
        text = data["choices"][0]["message"]["content"]
        usage = data.get("usage") or {}
        return self._response(
            text,
            start,
            tokens_in=int(usage.get("prompt_tokens", 0)),
            tokens_out=int(usage.get("completion_tokens", 0)),
        )
