"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any, Dict

from agent_brain.providers.base import Provider, ProviderOptions, ProviderResponse, ProviderFailure

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(Provider):
    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:
        api_key = self._api_key()
        if not api_key:
            return self._failure("missing_api_key", start)

        messages = options.messages(prompt)
        # system turns travel outside the message list
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        payload: Dict[str, Any] = {
            "model": self.spec.model or "claude-3-sonnet-20240229",
            "messages": [m for m in messages if m["role"] != "system"],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if system:
            payload["system"] = system
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        endpoint = self.spec.endpoint or "https://api.anthropic.com/v1/messages"
        data = await self._post_json(endpoint, payload, headers)
        text = "".join(block.get("text", "") for block in data["content"])
        usage = data.get("usage") or {}
        return self._response(
            text,
            start,
            tokens_in=int(usage.get("input_tokens", 0)),
            tokens_out=int(usage.get("output_tokens", 0)),
        )
