"""Tests for ConversationStore — per-user JSON persistence."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path

import pytest

from convman.conversation.models import Conversation, StoredMessage, UserRecord
from convman.conversation.store import ConversationStore
from convman.llm.base import Message, Role


def _messages() -> list[Message]:
    return [
        Message(role=Role.SYSTEM, content="You are helpful."),
        Message(
            role=Role.USER, content="What is the capital of France?",
            timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        ),
        Message(role=Role.ASSISTANT, content="Paris."),
    ]


class TestLoad:
    def test_missing_file_gives_empty_record(self, store: ConversationStore) -> None:
        record = store.load("alice")
        assert record.user_id == "alice"
        assert record.total_conversations == 0
        assert record.conversations == []

    def test_corrupt_json_gives_empty_record(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        (store.base_path / "alice.json").write_text("{not json", encoding="utf-8")
        record = store.load("alice")
        assert record.total_conversations == 0
        assert record.conversations == []

    def test_invalid_utf8_gives_empty_record(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        (store.base_path / "alice.json").write_bytes(b'{"userId": "alice\xff\xfe"}')
        record = store.load("alice")
        assert record.user_id == "alice"
        assert record.conversations == []

    def test_invalid_utf8_does_not_block_upsert(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        (store.base_path / "alice.json").write_bytes(b"\xff\xfe\x00garbage")
        record = store.upsert("alice", "1", _messages())
        assert record.total_conversations == 1

    def test_wrong_shape_gives_empty_record(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        (store.base_path / "alice.json").write_text(
            json.dumps({"conversations": "nope"}), encoding="utf-8",
        )
        assert store.load("alice").conversations == []

    def test_missing_conversations_key_tolerated(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        (store.base_path / "alice.json").write_text(
            json.dumps({"userId": "alice", "totalConversations": 2}), encoding="utf-8",
        )
        record = store.load("alice")
        assert record.total_conversations == 2
        assert record.conversations == []

    def test_legacy_timestamp_key(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        (store.base_path / "alice.json").write_text(json.dumps({
            "userId": "alice",
            "totalConversations": 1,
            "conversations": [{
                "conversationId": "1",
                "name": "Hello",
                "timestamp": "2024-11-05T10:00:00.000Z",
                "messages": [{"role": "user", "content": "Hello"}],
            }],
        }), encoding="utf-8")
        conversation = store.load("alice").conversations[0]
        assert conversation.created_at.year == 2024
        assert conversation.messages[0].timestamp is None


class TestSaveAndRoundTrip:
    def test_round_trip(self, store: ConversationStore) -> None:
        record = UserRecord(
            user_id="alice",
            total_conversations=2,
            conversations=[
                Conversation(
                    conversation_id="1", name="First",
                    messages=[StoredMessage.from_message(m) for m in _messages()],
                ),
                Conversation(
                    conversation_id="2", name="Second",
                    messages=[StoredMessage(role=Role.USER, content="Hi")],
                ),
            ],
        )
        store.save("alice", record)
        loaded = store.load("alice")

        assert len(loaded.conversations) == len(record.conversations)
        for original, restored in zip(record.conversations, loaded.conversations):
            assert [(m.role, m.content) for m in restored.messages] == [
                (m.role, m.content) for m in original.messages
            ]
        assert loaded.conversations[0].messages[1].timestamp == datetime(
            2024, 1, 1, 12, 0, tzinfo=timezone.utc,
        )

    def test_persisted_field_names(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        raw = json.loads((store.base_path / "alice.json").read_text(encoding="utf-8"))
        assert raw["userId"] == "alice"
        assert raw["totalConversations"] == 1
        conversation = raw["conversations"][0]
        assert set(conversation) == {"conversationId", "name", "createdAt", "messages"}
        assert conversation["messages"][0] == {
            "role": "system", "content": "You are helpful.", "timestamp": None,
        }

    def test_user_id_is_sanitized(self, store: ConversationStore) -> None:
        store.upsert("team/evil user", "1", _messages())
        files = list(store.base_path.glob("*.json"))
        assert len(files) == 1
        assert files[0].parent == store.base_path
        assert store.load("team/evil user").total_conversations == 1


class TestUpsert:
    def test_new_conversation_increments_total(self, store: ConversationStore) -> None:
        record = store.upsert("alice", "1", _messages())
        assert record.total_conversations == 1
        assert record.conversations[0].name == "What is the capital of France?"

    def test_existing_conversation_replaced(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        updated = _messages() + [Message(role=Role.USER, content="And Spain?")]
        record = store.upsert("alice", "1", updated)
        assert record.total_conversations == 1
        assert len(record.conversations) == 1
        assert record.conversations[0].messages[-1].content == "And Spain?"

    def test_second_conversation_appended(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        record = store.upsert("alice", "2", [Message(role=Role.USER, content="Hi")])
        assert record.total_conversations == 2
        assert [c.conversation_id for c in record.conversations] == ["1", "2"]

    def test_explicit_name(self, store: ConversationStore) -> None:
        record = store.upsert("alice", "1", _messages(), name="Geography")
        assert record.conversations[0].name == "Geography"


class TestGetHistory:
    def test_returns_messages(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        history = store.get_history("alice", "1")
        assert [m.role for m in history] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]

    def test_excludes_system(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        history = store.get_history("alice", "1", exclude_system=True)
        assert [m.role for m in history] == [Role.USER, Role.ASSISTANT]

    def test_unknown_conversation(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        assert store.get_history("alice", "42") == []

    def test_no_conversation_id(self, store: ConversationStore) -> None:
        assert store.get_history("alice", None) == []


class TestDeleteConversation:
    def test_removes_entry_keeps_total(self, store: ConversationStore) -> None:
        store.upsert("alice", "1", _messages())
        store.upsert("alice", "2", _messages())
        assert store.delete_conversation("alice", "1") is True
        record = store.load("alice")
        assert [c.conversation_id for c in record.conversations] == ["2"]
        assert record.total_conversations == 2

    def test_absent_conversation_is_not_an_error(self, store: ConversationStore) -> None:
        assert store.delete_conversation("alice", "9") is False
        assert not (store.base_path / "alice.json").exists()

    def test_corrupt_file_left_untouched(self, store: ConversationStore) -> None:
        store.base_path.mkdir(parents=True)
        path = store.base_path / "alice.json"
        path.write_text("garbage", encoding="utf-8")
        assert store.delete_conversation("alice", "1") is False
        assert path.read_text(encoding="utf-8") == "garbage"


class TestLogMessages:
    def test_writes_timestamped_dump(self, store: ConversationStore, tmp_path: Path) -> None:
        path = store.log_messages("alice", _messages())
        assert path.parent == tmp_path / "logs"
        assert path.name.startswith("alice_")
        assert ":" not in path.name
        assert re.fullmatch(
            r"alice_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z\.json", path.name,
        )
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert [m["role"] for m in payload] == ["system", "user", "assistant"]
        assert payload[1]["timestamp"].startswith("2024-01-01T12:00:00")

    def test_defaults_to_base_path(self, tmp_path: Path) -> None:
        store = ConversationStore(tmp_path / "data")
        path = store.log_messages("bob", [Message(role=Role.USER, content="hi")])
        assert path.parent == tmp_path / "data"


@pytest.mark.parametrize("user_id", ["alice", "user-123", "a.b"])
def test_user_file_name(store: ConversationStore, user_id: str) -> None:
    store.save(user_id, UserRecord(user_id=user_id))
    assert (store.base_path / f"{user_id}.json").is_file()
