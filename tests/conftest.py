"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from convman.config.settings import (
    GenerationConfig,
    LLMConfig,
    PresetConfig,
    Settings,
    SettingsResolver,
    StorageConfig,
)
from convman.conversation.manager import ConversationManager
from convman.conversation.store import ConversationStore
from convman.llm.base import Response


@pytest.fixture
def prompt_file(tmp_path: Path) -> Path:
    path = tmp_path / "poet.txt"
    path.write_text("You are a poet.", encoding="utf-8")
    return path


@pytest.fixture
def sample_settings(tmp_path: Path, prompt_file: Path) -> Settings:
    return Settings(
        llm=LLMConfig(provider="openai", api_key="test-key"),
        defaults=PresetConfig(
            model="gpt-4o-mini", temperature=0.7,
            conversation_max_tokens=500, response_tokens=100,
        ),
        models={
            "poet": PresetConfig(
                temperature=0.6, conversation_max_tokens=300,
                response_tokens=75, agent_file=str(prompt_file),
            ),
            "no-file": PresetConfig(model="small-model"),
        },
        storage=StorageConfig(path=str(tmp_path / "data")),
    )


@pytest.fixture
def resolver(sample_settings: Settings) -> SettingsResolver:
    return SettingsResolver(sample_settings)


@pytest.fixture
def generation() -> GenerationConfig:
    return GenerationConfig(
        model="test-model", temperature=0.5,
        conversation_max_tokens=1000, response_tokens=100,
    )


@pytest.fixture
def store(tmp_path: Path) -> ConversationStore:
    return ConversationStore(tmp_path / "data", tmp_path / "logs")


@pytest.fixture
def mock_llm_client() -> AsyncMock:
    client = AsyncMock()
    client.model = "test-model"
    client.chat = AsyncMock(return_value=Response(
        content="Assistant response", stop_reason="stop",
    ))
    return client


@pytest.fixture
def manager(
    mock_llm_client: AsyncMock,
    generation: GenerationConfig,
    resolver: SettingsResolver,
    store: ConversationStore,
) -> ConversationManager:
    return ConversationManager(
        llm=mock_llm_client,
        generation=generation,
        resolver=resolver,
        store=store,
        user_id="user123",
    )
