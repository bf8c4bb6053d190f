"""Factory for creating LLM clients based on configuration."""

from __future__ import annotations

import os

from convman.config.settings import LLMConfig
from convman.errors import ConfigurationError
from convman.llm.base import LLMClient

_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def create_llm_client(config: LLMConfig, model: str) -> LLMClient:
    """Create an LLM client based on the provider configuration.

    *model* is the default model; callers may override it per request. An
    empty ``api_key`` falls back to the provider's usual environment variable.
    """
    env_var = _API_KEY_ENV.get(config.provider)
    if env_var is None:
        raise ConfigurationError(f"Unknown LLM provider: {config.provider}")

    api_key = config.api_key or os.environ.get(env_var, "")
    if not api_key:
        raise ConfigurationError(
            f"API key is required. Set llm.api_key or {env_var}."
        )

    if config.provider == "anthropic":
        from convman.llm.anthropic import AnthropicClient
        client = AnthropicClient(model=model, api_key=api_key)
    else:
        from convman.llm.openai_compat import OpenAICompatClient
        client = OpenAICompatClient(
            model=model,
            api_key=api_key,
            base_url=config.base_url,
        )

    if config.log_file:
        from convman.llm.logging import LoggingLLMClient
        client = LoggingLLMClient(client, config.log_file, config.log_format)

    return client
