"""Exception hierarchy."""

from __future__ import annotations


class VigilBotError(Exception):
    """Base class for errors raised by vigil-bot itself."""


class InvalidCallbackDataError(VigilBotError, ValueError):
    """Raised when button-press data cannot be split into an action."""

    def __init__(self, data: str | None):
        super().__init__(f"Invalid callback data: {data!r}")
        self.data = data


class BackendError(VigilBotError):
    """Raised by a conversational backend when a call fails."""
