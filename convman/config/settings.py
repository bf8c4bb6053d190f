"""YAML config loader with environment variable expansion and preset resolution."""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path

import yaml
from pydantic import AliasChoices, BaseModel, Field

logger = logging.getLogger(__name__)


def _expand_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    pattern = re.compile(r"\$\{([^}]+)\}")
    def replacer(match: re.Match) -> str:
        var = match.group(1)
        return os.environ.get(var, match.group(0))
    return pattern.sub(replacer, value)


def _walk_and_expand(obj: object) -> object:
    """Recursively expand environment variables in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _walk_and_expand(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_expand(item) for item in obj]
    return obj


class LLMConfig(BaseModel):
    provider: str = "openai"
    api_key: str = ""
    base_url: str | None = None
    log_file: str | None = None
    log_format: str = "text"


class GenerationConfig(BaseModel):
    """Model and token limits applied to one conversation."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    conversation_max_tokens: int = Field(
        default=500,
        validation_alias=AliasChoices("conversation_max_tokens", "conversationMaxTokens"),
    )
    response_tokens: int = Field(
        default=100,
        validation_alias=AliasChoices("response_tokens", "responseTokens"),
    )


class PresetConfig(GenerationConfig):
    """A named preset: generation settings plus an optional prompt file."""

    agent_file: str | None = Field(
        default=None,
        validation_alias=AliasChoices("agent_file", "agentFile"),
    )

    def generation(self) -> GenerationConfig:
        return GenerationConfig(
            model=self.model,
            temperature=self.temperature,
            conversation_max_tokens=self.conversation_max_tokens,
            response_tokens=self.response_tokens,
        )


class StorageConfig(BaseModel):
    path: str = "logs"
    log_path: str | None = None


class Settings(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    defaults: PresetConfig = Field(default_factory=PresetConfig)
    models: dict[str, PresetConfig] = Field(default_factory=dict)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @property
    def storage_path(self) -> Path:
        return Path(self.storage.path).expanduser()

    @property
    def log_path(self) -> Path:
        if self.storage.log_path:
            return Path(self.storage.log_path).expanduser()
        return self.storage_path


class ConfigResolver(ABC):
    """Resolves an optional preset identifier to generation settings."""

    @abstractmethod
    def resolve(self, preset_id: str | None = None) -> PresetConfig:
        """Return the preset for *preset_id*, or the defaults if unknown."""


class SettingsResolver(ConfigResolver):
    """Resolves presets from the ``models`` table of loaded settings.

    Preset fields that are not set explicitly inherit from ``defaults``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def resolve(self, preset_id: str | None = None) -> PresetConfig:
        defaults = self._settings.defaults
        if not preset_id:
            return defaults.model_copy()

        preset = self._settings.models.get(preset_id)
        if preset is None:
            logger.warning("Unknown preset '%s', using defaults", preset_id)
            return defaults.model_copy()

        return defaults.model_copy(update=preset.model_dump(exclude_unset=True))


def load_config(path: str | Path | None = None) -> Settings:
    """Load configuration from a YAML (or JSON) file, falling back to defaults."""
    if path is None:
        candidates = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("config.json"),
            Path.home() / ".convman" / "config.yaml",
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    if path is not None:
        path = Path(path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _walk_and_expand(raw)
        logger.debug("Loaded configuration from %s", path)
        return Settings.model_validate(raw)

    return Settings()
