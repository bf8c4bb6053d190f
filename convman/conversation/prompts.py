"""System prompt sources."""

from __future__ import annotations

import logging
from pathlib import Path

from convman.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


def load_prompt(path: str | Path | None) -> str:
    """Read a prompt file, raising ConfigurationError if it cannot be read."""
    if not path:
        raise ConfigurationError("Agent file path is missing.")
    prompt_path = Path(path).expanduser()
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Agent file '{prompt_path}' could not be read: {exc}"
        ) from exc
    if not text.strip():
        raise ConfigurationError(f"Agent file '{prompt_path}' is empty.")
    logger.info("Loaded agent file from %s", prompt_path)
    return text
