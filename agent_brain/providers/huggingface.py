"""HuggingFace inference API provider."""

from __future__ import annotations

from agent_brain.providers.base import Provider, ProviderOptions, ProviderResponse, ProviderFailure


class HuggingFaceProvider(Provider):
    async def _invoke(
        self, prompt: str, options: ProviderOptions, start: float
    ) -> ProviderResponse | ProviderFailure:
        token = self._api_key()
        if not token:
            return self._failure("missing_api_token", start)

        model = self.spec.model or "mistralai/Mixtral-8x7B-Instruct-v0.1"
        url = self.spec.endpoint or f"https://api-inference.huggingface.co/models/{model}"
        turns = [m["content"] for m in options.messages(prompt)]
        data = await self._post_json(
            url,
            {
                "inputs": "\n\n".join(turns),
                "parameters": {
                    "max_new_tokens": options.max_tokens,
                    "temperature": options.temperature,
                    "return_full_text": False,
                },
            },
            {"Authorization": f"Bearer {token}"},
        )
        if isinstance(data, list):
            text = data[0].get("generated_text", "")
        else:
            text = data.get("generated_text", "")
        # the inference API reports no usage; estimate by whitespace tokens
        tokens_in = sum(len(t.split()) for t in turns)
        return self._response(text, start, tokens_in=tokens_in, tokens_out=len(text.split()))
