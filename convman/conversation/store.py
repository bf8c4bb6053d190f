"""Conversation store — one JSON document per user, plus per-turn log dumps."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from convman.conversation.lifecycle import generate_conversation_name
from convman.conversation.models import Conversation, StoredMessage, UserRecord
from convman.llm.base import Message, Role

logger = logging.getLogger(__name__)


class ConversationStore:
    """Loads and saves user records under a base directory.

    Directory layout::

        <base>/<user>.json               — full user record
        <log_path>/<user>_<stamp>.json   — per-turn message dumps

    Every write is a whole-document read/modify/write; the last writer wins.
    """

    def __init__(self, base_path: Path, log_path: Path | None = None) -> None:
        self._base = Path(base_path)
        self._log_path = Path(log_path) if log_path is not None else self._base

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _user_path(self, user_id: str) -> Path:
        return self._base / f"{self._sanitize(user_id)}.json"

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def load(self, user_id: str) -> UserRecord:
        """Return the user's record, or an empty one if it cannot be read."""
        path = self._user_path(user_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No existing data for user %s, starting fresh", user_id)
            return UserRecord(user_id=user_id)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return UserRecord(user_id=user_id)

        try:
            record = UserRecord.model_validate_json(raw)
        except ValueError as exc:
            logger.warning("Corrupt user data in %s, starting fresh: %s", path, exc)
            return UserRecord(user_id=user_id)

        if not record.user_id:
            record.user_id = user_id
        return record

    def save(self, user_id: str, record: UserRecord) -> None:
        """Write the full record back to disk."""
        path = self._user_path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(record.to_json(), encoding="utf-8")
        logger.info("Saved data for user %s", user_id)

    def upsert(
        self,
        user_id: str,
        conversation_id: str,
        messages: Sequence[Message],
        name: str | None = None,
    ) -> UserRecord:
        """Replace a conversation's messages, or append it as a new one."""
        record = self.load(user_id)
        stored = [StoredMessage.from_message(m) for m in messages]

        existing = record.find(conversation_id)
        if existing is not None:
            existing.messages = stored
        else:
            record.conversations.append(Conversation(
                conversation_id=conversation_id,
                name=name or generate_conversation_name(messages),
                messages=stored,
            ))
            record.total_conversations += 1

        self.save(user_id, record)
        return record

    def get_history(
        self,
        user_id: str,
        conversation_id: str | None,
        exclude_system: bool = False,
    ) -> list[Message]:
        """Return a persisted conversation's messages, or an empty list."""
        if conversation_id is None:
            return []
        conversation = self.load(user_id).find(conversation_id)
        if conversation is None:
            return []
        messages = [m.to_message() for m in conversation.messages]
        if exclude_system:
            messages = [m for m in messages if m.role != Role.SYSTEM]
        return messages

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        """Remove a persisted conversation. Returns False if it was absent.

        ``totalConversations`` is a lifetime counter and is left unchanged.
        """
        record = self.load(user_id)
        remaining = [
            c for c in record.conversations if c.conversation_id != conversation_id
        ]
        if len(remaining) == len(record.conversations):
            logger.info(
                "No stored conversation %s for user %s", conversation_id, user_id,
            )
            return False

        record.conversations = remaining
        self.save(user_id, record)
        logger.info("Deleted conversation %s for user %s", conversation_id, user_id)
        return True

    # ------------------------------------------------------------------
    # Per-turn log
    # ------------------------------------------------------------------

    def log_messages(self, user_id: str, messages: Sequence[Message]) -> Path:
        """Dump *messages* to a timestamped file. Never read back."""
        self._log_path.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
        path = self._log_path / f"{self._sanitize(user_id)}_{stamp}.json"
        payload = [
            StoredMessage.from_message(m).model_dump(mode="json") for m in messages
        ]
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info("Logged conversation for user %s at %s", user_id, path)
        return path

    @staticmethod
    def _sanitize(name: str) -> str:
        """Sanitize a name for use as a filename."""
        return re.sub(r"[^\w\-.]", "_", name) or "_"
