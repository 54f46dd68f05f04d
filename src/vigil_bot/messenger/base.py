"""Abstract messenger adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from vigil_bot.messenger.models import InlineKeyboard, OutgoingMessage, PlatformUpdate

UpdateCallback = Callable[[PlatformUpdate], Awaitable[None]]
ErrorCallback = Callable[[BaseException, Optional[PlatformUpdate]], Awaitable[None]]


class MessengerAdapter(ABC):
    """Base class for messenger platform adapters.

    Message ids are opaque strings; adapters convert them to whatever the
    platform API expects.
    """

    def __init__(self) -> None:
        self._update_callback: UpdateCallback | None = None
        self._error_callback: ErrorCallback | None = None

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and begin receiving updates."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop receiving updates and disconnect."""
        ...

    @abstractmethod
    async def send_message(self, message: OutgoingMessage) -> str:
        """Send a message and return its id."""
        ...

    @abstractmethod
    async def edit_message(
        self,
        chat_id: str,
        message_id: str,
        text: str,
        parse_mode: Optional[str] = None,
        keyboard: Optional[InlineKeyboard] = None,
    ) -> None:
        """Replace the text (and keyboard) of an existing message."""
        ...

    @abstractmethod
    async def delete_message(self, chat_id: str, message_id: str) -> None:
        ...

    @abstractmethod
    async def send_typing_indicator(self, chat_id: str) -> None:
        """Show typing/processing indicator."""
        ...

    @abstractmethod
    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        """Acknowledge a button press, optionally with a short toast."""
        ...

    def on_update(self, callback: UpdateCallback) -> None:
        """Register the callback invoked for every inbound update."""
        self._update_callback = callback

    def on_error(self, callback: ErrorCallback) -> None:
        """Register the callback for errors escaping update processing."""
        self._error_callback = callback

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return platform identifier string."""
        ...
