"""OpenAI-compatible LLM implementation (works with OpenAI, Ollama, vLLM, LiteLLM)."""

from __future__ import annotations

import logging
from typing import Any

from convman.errors import TransportError
from convman.llm.base import LLMClient, Response

logger = logging.getLogger(__name__)


class OpenAICompatClient(LLMClient):
    """LLM client using the OpenAI SDK (compatible with any OpenAI API endpoint)."""

    def __init__(self, model: str, api_key: str, base_url: str | None = None, **kwargs: Any):
        super().__init__(model, api_key)
        import openai
        client_kwargs: dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    async def chat(self, messages: list[dict[str, str]],
                   max_tokens: int,
                   temperature: float,
                   model: str | None = None) -> Response:
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            resp = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            logger.error("OpenAI API error: %s", exc)
            raise TransportError(f"OpenAI API error: {exc}") from exc

        return self._parse_response(resp)

    def _parse_response(self, resp: Any) -> Response:
        if not resp.choices:
            raise TransportError("No response from OpenAI API.")
        choice = resp.choices[0]
        content = (choice.message.content or "").strip()
        if not content:
            raise TransportError("OpenAI API returned an empty completion.")

        usage = {}
        if resp.usage:
            usage = {
                "input_tokens": resp.usage.prompt_tokens,
                "output_tokens": resp.usage.completion_tokens,
            }

        return Response(
            content=content,
            stop_reason=choice.finish_reason or "",
            usage=usage,
        )
