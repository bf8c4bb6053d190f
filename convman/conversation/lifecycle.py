"""Conversation ID and name generation."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from convman.conversation.models import UserRecord
from convman.llm.base import Message, Role

logger = logging.getLogger(__name__)

UNTITLED_CONVERSATION = "Untitled Conversation"
NAME_MAX_LENGTH = 30


def generate_conversation_id(record: UserRecord) -> str:
    """Return one more than the highest numeric conversation ID.

    Safe for a single sequential writer only; two processes scanning the
    same record can hand out the same ID.
    """
    highest = 0
    for conversation in record.conversations:
        try:
            value = int(conversation.conversation_id)
        except ValueError:
            logger.debug(
                "Skipping non-numeric conversation ID %r", conversation.conversation_id,
            )
            continue
        highest = max(highest, value)
    return str(highest + 1)


def provisional_name(conversation_id: str) -> str:
    return f"Conversation {conversation_id}"


def generate_conversation_name(messages: Sequence[Message]) -> str:
    """Name a conversation after its first user message."""
    for msg in messages:
        if msg.role == Role.USER:
            return msg.content[:NAME_MAX_LENGTH].strip()
    return UNTITLED_CONVERSATION
