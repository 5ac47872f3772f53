"""IRCTransport domain exceptions."""

from __future__ import annotations


class IRCTransportError(Exception):
    """Base for IRCTransport domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class ConfigurationError(IRCTransportError):
    """Config validation or load failure."""


class SettingsStoreError(IRCTransportError):
    """Agent settings could not be read from the backing store."""


class AgentClosedError(IRCTransportError):
    """Agent was shut down; a new agent is required to reconnect."""
