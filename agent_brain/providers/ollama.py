"""Ollama provider for free local inference."""

from __future__ import annotations

import os

from agent_brain.providers.base import Provider, ProviderOptions, ProviderResponse, ProviderFailure


class OllamaProvider(Provider):
    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:
        url = self.spec.endpoint or os.getenv("OLLAMA_URL", "http://localhost:11434/api/chat")
        data = await self._post_json(
            url,
            {
                "model": self.spec.model or "llama3.1",
                "messages": options.messages(prompt),
                "stream": False,
                "options": {
                    "num_predict": options.max_tokens,
                    "temperature": options.temperature,
                },
            },
        )
        text = (data.get("message") or {}).get("content") or data.get("response") or ""
        return self._response(
            text,
            start,
            tokens_in=int(data.get("prompt_eval_count", 0)),
            tokens_out=int(data.get("eval_count", 0)),
        )
