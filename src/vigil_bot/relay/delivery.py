"""Put a rendered response in front of the user, degrading as needed.

The chain is: edit the placeholder, send a new HTML message, send the simpler
fallback rendering as HTML, then send it as plain text. Each step is tried only
if the previous one failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from vigil_bot.log import get_logger
from vigil_bot.messenger.base import MessengerAdapter
from vigil_bot.messenger.models import OutgoingMessage
from vigil_bot.render.renderer import RenderedResponse

logger = get_logger(__name__)


@dataclass(frozen=True)
class Edited:
    message_id: str


@dataclass(frozen=True)
class SentNew:
    message_id: str
    plain: bool = False


@dataclass(frozen=True)
class Failed:
    reason: str


DeliveryOutcome = Union[Edited, SentNew, Failed]


async def _send(adapter: MessengerAdapter, chat_id: str, rendered: RenderedResponse) -> str:
    return await adapter.send_message(
        OutgoingMessage(
            chat_id=chat_id,
            text=rendered.text,
            parse_mode=rendered.parse_mode,
            keyboard=rendered.keyboard,
        )
    )


async def deliver(
    adapter: MessengerAdapter,
    chat_id: str,
    rendered: RenderedResponse,
    placeholder_id: Optional[str] = None,
    fallback: Optional[RenderedResponse] = None,
) -> DeliveryOutcome:
    """Deliver *rendered*; *fallback* is the simpler rendering tried before plain text."""
    if placeholder_id is not None:
        try:
            await adapter.edit_message(
                chat_id,
                placeholder_id,
                rendered.text,
                parse_mode=rendered.parse_mode,
                keyboard=rendered.keyboard,
            )
            return Edited(placeholder_id)
        except Exception as e:
            logger.warning("deliver_edit_failed", chat_id=chat_id, placeholder_id=placeholder_id, error=str(e))

    try:
        return SentNew(await _send(adapter, chat_id, rendered))
    except Exception as e:
        logger.warning("deliver_send_failed", chat_id=chat_id, tier=rendered.tier, error=str(e))

    if fallback is not None:
        try:
            return SentNew(await _send(adapter, chat_id, fallback))
        except Exception as e:
            logger.warning("deliver_send_failed", chat_id=chat_id, tier=fallback.tier, error=str(e))

    plain = (fallback or rendered).as_plain()
    try:
        message_id = await _send(adapter, chat_id, plain)
        return SentNew(message_id, plain=True)
    except Exception as e:
        logger.error("deliver_failed", chat_id=chat_id, error=str(e))
        return Failed(str(e))
