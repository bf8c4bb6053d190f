"""Persisted per-user conversation records."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from convman.llm.base import Message, Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredMessage(BaseModel):
    role: Role
    content: str
    timestamp: datetime | None = None

    @classmethod
    def from_message(cls, message: Message) -> StoredMessage:
        return cls(role=message.role, content=message.content, timestamp=message.timestamp)

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content, timestamp=self.timestamp)


class Conversation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId")
    name: str = ""
    # Older records stored the creation time under "timestamp".
    created_at: datetime = Field(
        default_factory=_utcnow,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "timestamp", "created_at"),
    )
    messages: list[StoredMessage] = Field(default_factory=list)


class UserRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(default="", alias="userId")
    total_conversations: int = Field(default=0, alias="totalConversations")
    conversations: list[Conversation] = Field(default_factory=list)

    def find(self, conversation_id: str) -> Conversation | None:
        """Return the conversation with *conversation_id*, if any."""
        for conversation in self.conversations:
            if conversation.conversation_id == conversation_id:
                return conversation
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
