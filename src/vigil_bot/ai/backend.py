"""Conversational backend interface and result types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

# Receives (stage_name, detail) while a backend call is in flight.
ProgressCallback = Callable[[str, Optional[str]], Awaitable[None]]


@dataclass
class AssistantMessage:
    text: str
    id: Optional[int] = None


@dataclass
class BackendResult:
    """Final answer of one backend call."""

    assistant_message: Optional[AssistantMessage]
    structured_data: Optional[dict[str, Any]] = None
    executed_actions: list[dict[str, Any]] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.assistant_message.text if self.assistant_message else ""


@dataclass(frozen=True)
class BackendOptions:
    """Hints attached to a query, e.g. by a decoded button press."""

    system_directive: Optional[str] = None
    priority_tools: tuple[str, ...] = ()


class ConversationBackend(ABC):
    """Answers one user query per call, reporting stages through *progress*."""

    @abstractmethod
    async def send_message(
        self,
        user_id: int,
        chat_id: int,
        text: str,
        session_id: int,
        progress: Optional[ProgressCallback] = None,
        options: Optional[BackendOptions] = None,
    ) -> BackendResult:
        ...

    async def close(self) -> None:
        """Release network resources."""


BackendCall = Callable[..., Awaitable[BackendResult]]
