"""Abstract LLM client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    role: Role
    content: str
    timestamp: datetime | None = None

    def to_api(self) -> dict[str, str]:
        """Return the wire form without transient fields."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class Response:
    content: str = ""
    stop_reason: str = ""
    usage: dict[str, int] = field(default_factory=dict)


class LLMClient(ABC):
    """Abstract interface for completion backends."""

    def __init__(self, model: str, api_key: str, **kwargs: Any):
        self.model = model
        self.api_key = api_key

    @abstractmethod
    async def chat(self, messages: list[dict[str, str]],
                   max_tokens: int,
                   temperature: float,
                   model: str | None = None) -> Response:
        """Send ``{role, content}`` messages and return the completion.

        ``model`` overrides the client's default model for this call.
        Implementations raise :class:`~convman.errors.TransportError` when
        the backend fails or returns no content.
        """
