"""Exception hierarchy shared by the conversation core and its collaborators."""

from __future__ import annotations


class ConvmanError(Exception):
    """Base class for all convman errors."""


class ValidationError(ConvmanError):
    """Message content failed validation (e.g. empty after stripping)."""


class ConfigurationError(ConvmanError):
    """System setup could not be applied."""


class BudgetExceededError(ConvmanError):
    """No token headroom left for a response."""

    def __init__(self, available_tokens: int) -> None:
        super().__init__(
            "Not enough token space for a response "
            f"({available_tokens} tokens available). "
            "Clear conversation history to continue."
        )
        self.available_tokens = available_tokens


class TransportError(ConvmanError):
    """The completion backend failed or returned no usable response."""
