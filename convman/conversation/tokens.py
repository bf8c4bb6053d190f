"""Token budget estimation.

Counts are an approximation: one token per whitespace-delimited word. This
is deliberately not sub-word tokenization; it is cheap, deterministic and
consistent across backends.
"""

from __future__ import annotations

from collections.abc import Iterable

from convman.llm.base import Message


def estimate(text: str) -> int:
    """Approximate token count of *text*."""
    return len(text.split())


def total_tokens(messages: Iterable[Message]) -> int:
    """Approximate token count of a message list, system message included."""
    return sum(estimate(msg.content) for msg in messages)
