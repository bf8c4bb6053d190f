"""Anthropic/Claude LLM implementation."""

from __future__ import annotations

import logging
from typing import Any

from convman.errors import TransportError
from convman.llm.base import LLMClient, Response, Role

logger = logging.getLogger(__name__)


class AnthropicClient(LLMClient):
    """LLM client using the Anthropic SDK."""

    def __init__(self, model: str, api_key: str, **kwargs: Any):
        super().__init__(model, api_key)
        import anthropic
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def chat(self, messages: list[dict[str, str]],
                   max_tokens: int,
                   temperature: float,
                   model: str | None = None) -> Response:
        system, api_messages = self._convert_messages(messages)
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": api_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        try:
            resp = await self._client.messages.create(**kwargs)
        except Exception as exc:
            logger.error("Anthropic API error: %s", exc)
            raise TransportError(f"Anthropic API error: {exc}") from exc

        return self._parse_response(resp)

    def _convert_messages(
        self, messages: list[dict[str, str]],
    ) -> tuple[str | None, list[dict[str, str]]]:
        """Split out system content, which Anthropic takes as a parameter."""
        system_parts = []
        result = []
        for msg in messages:
            if msg["role"] == Role.SYSTEM.value:
                system_parts.append(msg["content"])
                continue
            result.append({"role": msg["role"], "content": msg["content"]})
        system = "\n\n".join(system_parts) if system_parts else None
        return system, result

    def _parse_response(self, resp: Any) -> Response:
        content_parts = [
            block.text for block in resp.content if block.type == "text"
        ]
        content = "\n".join(content_parts).strip()
        if not content:
            raise TransportError("Anthropic API returned an empty completion.")

        return Response(
            content=content,
            stop_reason=resp.stop_reason or "",
            usage={
                "input_tokens": resp.usage.input_tokens,
                "output_tokens": resp.usage.output_tokens,
            },
        )
