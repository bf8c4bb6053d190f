"""Conversation state machine — system prompt, history trimming, completions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from convman.config.settings import ConfigResolver, GenerationConfig, PresetConfig
from convman.conversation.lifecycle import generate_conversation_id, provisional_name
from convman.conversation.models import Conversation, UserRecord
from convman.conversation.prompts import DEFAULT_SYSTEM_PROMPT, load_prompt
from convman.conversation.store import ConversationStore
from convman.conversation.tokens import total_tokens
from convman.errors import BudgetExceededError, ConfigurationError, ValidationError
from convman.llm.base import LLMClient, Message, Role

logger = logging.getLogger(__name__)

PromptLoader = Callable[[str | Path | None], str]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SYSTEM_CONFIGURED = "system_configured"
    ACTIVE = "active"
    TERMINATED = "terminated"
    RESET = "reset"


@dataclass(frozen=True)
class DirectSetup:
    """Prompt text and generation parameters given inline."""

    prompt: str | None = None
    model: str | None = None
    temperature: float | None = None
    conversation_max_tokens: int | None = None
    response_tokens: int | None = None


@dataclass(frozen=True)
class ConfigSetup:
    """Generation parameters and prompt file taken from a named preset."""

    preset_id: str | None = None


@dataclass(frozen=True)
class FileSetup:
    """Prompt read from *path*; generation parameters given inline."""

    path: str | Path | None = None
    model: str | None = None
    temperature: float | None = None
    conversation_max_tokens: int | None = None
    response_tokens: int | None = None


SystemSetup = DirectSetup | ConfigSetup | FileSetup

_SETUP_MODES: dict[str, type] = {
    "direct": DirectSetup,
    "config": ConfigSetup,
    "file": FileSetup,
}

# Legacy option names accepted by setup_from_mode().
_OPTION_ALIASES = {
    "agentPrompt": "prompt",
    "agent_prompt": "prompt",
    "modelId": "preset_id",
    "model_id": "preset_id",
    "agentFilePath": "path",
    "agent_file_path": "path",
    "conversationMaxTokens": "conversation_max_tokens",
    "responseTokens": "response_tokens",
}


def setup_from_mode(mode: str, options: Mapping[str, Any] | None = None) -> SystemSetup:
    """Build a setup variant from a mode tag and an options mapping."""
    setup_cls = _SETUP_MODES.get(mode)
    if setup_cls is None:
        raise ConfigurationError(
            f"Invalid mode '{mode}'. Please use 'direct', 'config', or 'file'."
        )
    normalized = {_OPTION_ALIASES.get(k, k): v for k, v in (options or {}).items()}
    accepted = {f.name for f in fields(setup_cls)}
    ignored = sorted(set(normalized) - accepted)
    if ignored:
        logger.debug("Ignoring options %s for %s mode", ignored, mode)
    return setup_cls(**{k: v for k, v in normalized.items() if k in accepted})


@dataclass
class TurnCount:
    user_messages: int
    assistant_responses: int


class ConversationManager:
    """Owns the active message list of one user's conversation.

    The system message, when present, is pinned at index 0 and is never
    evicted by trimming. Nothing is persisted until :meth:`save_history`.
    """

    def __init__(
        self,
        llm: LLMClient,
        generation: GenerationConfig,
        resolver: ConfigResolver,
        store: ConversationStore | None = None,
        user_id: str = "",
        prompt_loader: PromptLoader = load_prompt,
    ) -> None:
        self._llm = llm
        self._defaults = generation
        self._generation = generation
        self._resolver = resolver
        self._store = store
        self._user_id = user_id
        self._load_prompt = prompt_loader
        self._messages: list[Message] = []
        self._conversation_id: str | None = None
        self._conversation_name = ""
        self._state = SessionState.UNINITIALIZED

        if user_id and store is not None:
            self._begin_conversation()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def conversation_name(self) -> str:
        return self._conversation_name

    @property
    def generation(self) -> GenerationConfig:
        return self._generation

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def total_tokens(self) -> int:
        return total_tokens(self._messages)

    def system_messages(self) -> list[Message]:
        return [m for m in self._messages if m.role == Role.SYSTEM]

    def messages_for_api(self) -> list[dict[str, str]]:
        """Messages as ``{role, content}`` dicts, timestamps stripped."""
        return [m.to_api() for m in self._messages]

    # ------------------------------------------------------------------
    # System prompt
    # ------------------------------------------------------------------

    def configure_system(self, setup: SystemSetup) -> None:
        """Install the system prompt and generation settings for *setup*.

        Any existing system message is replaced. Nothing changes if the
        setup fails.
        """
        if isinstance(setup, DirectSetup):
            prompt = setup.prompt if setup.prompt and setup.prompt.strip() else None
            prompt = prompt or DEFAULT_SYSTEM_PROMPT
            generation = self._with_overrides(setup)
        elif isinstance(setup, ConfigSetup):
            preset = self._resolver.resolve(setup.preset_id)
            prompt = self._preset_prompt(preset, setup.preset_id)
            generation = preset.generation()
        elif isinstance(setup, FileSetup):
            prompt = self._load_prompt(setup.path)
            generation = self._with_overrides(setup)
        else:
            raise ConfigurationError(f"Unsupported system setup: {setup!r}")

        if self.system_messages():
            logger.info("System already set, replacing system prompt")
        self._messages = [m for m in self._messages if m.role != Role.SYSTEM]
        self._messages.insert(0, Message(role=Role.SYSTEM, content=prompt))
        self._generation = generation
        self._state = SessionState.SYSTEM_CONFIGURED

    def _with_overrides(self, setup: DirectSetup | FileSetup) -> GenerationConfig:
        overrides = {
            "model": setup.model,
            "temperature": setup.temperature,
            "conversation_max_tokens": setup.conversation_max_tokens,
            "response_tokens": setup.response_tokens,
        }
        return self._defaults.model_copy(
            update={k: v for k, v in overrides.items() if v is not None},
        )

    def _preset_prompt(self, preset: PresetConfig, preset_id: str | None) -> str:
        if preset.agent_file:
            try:
                return self._load_prompt(preset.agent_file)
            except ConfigurationError as exc:
                logger.warning("%s Using default prompt.", exc)
                return DEFAULT_SYSTEM_PROMPT
        logger.warning(
            "No agent file for preset '%s', using default prompt", preset_id,
        )
        return DEFAULT_SYSTEM_PROMPT

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, content: str, role: Role | str = Role.USER) -> None:
        """Append a timestamped message, then trim to the token budget."""
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Message content must not be empty.")
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError(f"Unknown message role: {role!r}") from None

        self._messages.append(Message(
            role=role, content=content, timestamp=datetime.now(timezone.utc),
        ))
        self._state = SessionState.ACTIVE
        self.trim()

    def trim(self) -> int:
        """Drop oldest non-system messages until within budget.

        Returns the number of messages removed.
        """
        budget = self._generation.conversation_max_tokens
        removed = 0
        while total_tokens(self._messages) > budget:
            index = next(
                (i for i, m in enumerate(self._messages) if m.role != Role.SYSTEM),
                None,
            )
            if index is None:
                break
            del self._messages[index]
            removed += 1
        if removed:
            logger.debug("Trimmed %d message(s) to fit %d tokens", removed, budget)
        return removed

    def count_turns(self) -> TurnCount:
        return TurnCount(
            user_messages=sum(1 for m in self._messages if m.role == Role.USER),
            assistant_responses=sum(
                1 for m in self._messages if m.role == Role.ASSISTANT
            ),
        )

    def _collapse_system_messages(self) -> None:
        """Keep only the first system message; other order is preserved."""
        if len(self.system_messages()) <= 1:
            return
        logger.warning("Duplicate system messages found. Keeping only the first.")
        seen_system = False
        collapsed: list[Message] = []
        for msg in self._messages:
            if msg.role == Role.SYSTEM:
                if seen_system:
                    continue
                seen_system = True
            collapsed.append(msg)
        self._messages = collapsed

    async def request_completion(self) -> str:
        """Send the conversation to the LLM and append its reply.

        Raises BudgetExceededError, without calling the LLM, when no tokens
        are left for a response. Errors from the LLM client propagate with
        the message list unchanged.
        """
        self._collapse_system_messages()

        available = self._generation.conversation_max_tokens - self.total_tokens
        response_limit = min(self._generation.response_tokens, available)
        if response_limit <= 0:
            raise BudgetExceededError(available)

        response = await self._llm.chat(
            self.messages_for_api(),
            response_limit,
            self._generation.temperature,
            model=self._generation.model,
        )
        self.add_message(response.content, Role.ASSISTANT)
        return response.content

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _require_store(self) -> ConversationStore:
        if self._store is None:
            raise ConfigurationError("No conversation store configured.")
        return self._store

    def _load_record(self) -> UserRecord:
        if self._store is None:
            return UserRecord(user_id=self._user_id)
        return self._store.load(self._user_id)

    def _assign_conversation_id(self) -> None:
        self._conversation_id = generate_conversation_id(self._load_record())
        self._conversation_name = provisional_name(self._conversation_id)

    def _begin_conversation(self) -> None:
        self._assign_conversation_id()
        self._messages = []
        logger.info("Starting new conversation with ID %s", self._conversation_id)

    def _activate(self, conversation: Conversation) -> None:
        self._conversation_id = conversation.conversation_id
        self._conversation_name = conversation.name
        self._messages = [m.to_message() for m in conversation.messages]
        self._state = SessionState.ACTIVE

    def start_new_conversation(self) -> str:
        """Switch to a fresh conversation ID with an empty message list.

        The system prompt is not reinstated; call :meth:`configure_system`.
        """
        self._begin_conversation()
        self._state = SessionState.RESET
        return self._conversation_id

    def load_latest_conversation(self) -> None:
        """Activate the most recent stored conversation, or start a new one."""
        record = self._require_store().load(self._user_id)
        if record.conversations:
            self._activate(record.conversations[-1])
            logger.info("Loaded conversation %s", self._conversation_id)
        else:
            logger.warning("No conversations found for user %s", self._user_id)
            self.start_new_conversation()

    def set_active_conversation(self, conversation_id: str) -> bool:
        """Activate a stored conversation. Returns False if it does not exist."""
        conversation = self._require_store().load(self._user_id).find(conversation_id)
        if conversation is None:
            logger.warning("Conversation with ID %s not found", conversation_id)
            return False
        self._activate(conversation)
        return True

    def load_history(self, conversation_id: str) -> list[Message]:
        return self._require_store().get_history(self._user_id, conversation_id)

    def get_history(
        self, conversation_id: str | None = None, exclude_system: bool = False,
    ) -> list[Message]:
        """Stored messages of *conversation_id* (default: the active one)."""
        return self._require_store().get_history(
            self._user_id,
            conversation_id or self._conversation_id,
            exclude_system=exclude_system,
        )

    def save_history(self) -> UserRecord:
        """Upsert the active conversation into the user's record."""
        store = self._require_store()
        if self._conversation_id is None:
            self._assign_conversation_id()
        record = store.upsert(self._user_id, self._conversation_id, self._messages)
        saved = record.find(self._conversation_id)
        if saved is not None:
            self._conversation_name = saved.name
        return record

    def delete_history(self) -> None:
        """Clear the active conversation down to its system prompt.

        The stored copy is removed as well; a missing copy is not an error.
        """
        if self._conversation_id is None:
            logger.warning("No active conversation to delete")
            return
        self._messages = self.system_messages()
        if self._store is not None:
            self._store.delete_conversation(self._user_id, self._conversation_id)
        self._state = SessionState.TERMINATED
        logger.info("Conversation history cleared, system settings retained")

    def log_response(self) -> Path:
        """Dump the current message list to the per-turn log."""
        return self._require_store().log_messages(self._user_id, self._messages)
