"""Google Gemini generateContent provider."""

from __future__ import annotations

from typing import Any, Dict

from agent_brain.providers.base import Provider, ProviderOptions, ProviderResponse, ProviderFailure

ROLE_MAP = {"user": "user", "assistant": "model"}


class GoogleProvider(Provider):
    def _endpoint(self) -> str:
        if self.spec.endpoint:
            return self.spec.endpoint
        model = self.spec.model or "gemini-pro"
        return f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:
        api_key = self._api_key()
        if not api_key:
            return self._failure("missing_api_key", start)

        messages = options.messages(prompt)
        contents = [
            {"role": ROLE_MAP[m["role"]], "parts": [{"text": m["content"]}]}
            for m in messages
            if m["role"] in ROLE_MAP
        ]
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "maxOutputTokens": options.max_tokens,
                "temperature": options.temperature,
            },
        }
        system = [m["content"] for m in messages if m["role"] == "system"]
        if system:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system)}]}
        headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        data = await self._post_json(self._endpoint(), payload, headers)
        text = data["candidates"][0]["content"]["parts"][0]["text"]
        usage = data.get("usageMetadata") or {}
        return self._response(
            text,
            start,
            tokens_in=int(usage.get("promptTokenCount", 0)),
            tokens_out=int(usage.get("candidatesTokenCount", 0)),
        )
