"""Logging wrapper for LLM clients."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from convman.errors import TransportError
from convman.llm.base import LLMClient, Response

SEPARATOR = "═" * 64


class LoggingLLMClient(LLMClient):
    """Wrapper that logs all LLM requests and responses to a file."""

    def __init__(self, client: LLMClient, log_file: str, log_format: str = "text"):
        self._client = client
        self._log_path = Path(log_file).expanduser()
        self._log_format = log_format
        self._log_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def model(self) -> str:
        return self._client.model

    @property
    def api_key(self) -> str:
        return self._client.api_key

    async def chat(
        self,
        messages: list[dict[str, str]],
        max_tokens: int,
        temperature: float,
        model: str | None = None,
    ) -> Response:
        request = {
            "model": model or self._client.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        try:
            response = await self._client.chat(
                messages, max_tokens, temperature, model=model,
            )
        except TransportError as exc:
            self._log(request, None, str(exc))
            raise
        self._log(request, response, None)
        return response

    def _log(
        self,
        request: dict[str, Any],
        response: Response | None,
        error: str | None,
    ) -> None:
        if self._log_format == "jsonl":
            self._log_jsonl(request, response, error)
        else:
            self._log_text(request, response, error)

    def _log_text(
        self,
        request: dict[str, Any],
        response: Response | None,
        error: str | None,
    ) -> None:
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        messages = request["messages"]
        lines: list[str] = []

        # --- Request ---
        lines.append(SEPARATOR)
        lines.append(f"[{now}] REQUEST")
        lines.append(SEPARATOR)
        lines.append("")
        lines.append(
            f"Model: {request['model']} | Max tokens: {request['max_tokens']}"
            f" | Temperature: {request['temperature']}"
        )
        lines.append("")

        lines.append(f"--- Messages ({len(messages)}) ---")
        lines.append("")
        for msg in messages:
            lines.append(f"[{msg['role']}]")
            lines.append(msg["content"])
            lines.append("")

        # --- Response ---
        if response is None:
            lines.append(SEPARATOR)
            lines.append(f"[{now}] ERROR")
            lines.append(SEPARATOR)
            lines.append("")
            lines.append(error or "")
            lines.append("")
        else:
            lines.append(SEPARATOR)
            lines.append(f"[{now}] RESPONSE ({response.stop_reason})")
            lines.append(SEPARATOR)
            lines.append("")
            lines.append(response.content)
            lines.append("")

            if response.usage:
                input_tokens = response.usage.get("input_tokens", 0)
                output_tokens = response.usage.get("output_tokens", 0)
                lines.append("--- Usage ---")
                lines.append(f"Input: {input_tokens} | Output: {output_tokens}")
                lines.append("")

        with open(self._log_path, "a") as f:
            f.write("\n".join(lines) + "\n")

    def _log_jsonl(
        self,
        request: dict[str, Any],
        response: Response | None,
        error: str | None,
    ) -> None:
        entry: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "request": request,
            "response": None,
            "error": error,
        }
        if response is not None:
            entry["response"] = {
                "content": response.content,
                "stop_reason": response.stop_reason,
                "usage": response.usage,
            }

        with open(self._log_path, "a") as f:
            f.write(json.dumps(entry) + "\n")
