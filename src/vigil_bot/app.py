"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from typing import Optional

from vigil_bot.ai.backend import ConversationBackend
from vigil_bot.config import AppConfig
from vigil_bot.core.resolver import IdentityResolver
from vigil_bot.log import get_logger
from vigil_bot.messenger.base import MessengerAdapter
from vigil_bot.relay.handler import UpdateHandler
from vigil_bot.render.renderer import RenderOptions
from vigil_bot.storage.database import Database
from vigil_bot.storage.message_repo import MessageRepository

logger = get_logger(__name__)


class VigilBotApp:
    """Top-level application orchestrator.

    The transport and backend are created from config unless injected.
    """

    def __init__(
        self,
        config: AppConfig,
        adapter: Optional[MessengerAdapter] = None,
        backend: Optional[ConversationBackend] = None,
    ):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.messages = MessageRepository(self.db)
        self.resolver = IdentityResolver(self.db)
        self.adapter = adapter
        self.backend = backend
        self.handler: UpdateHandler | None = None
        self._started = False
        self._stopped = False

    async def start(self) -> None:
        """Initialize storage, wire the handler and start receiving updates."""
        # 1. Database
        await self.db.initialize()

        # 2. Collaborators
        if self.backend is None:
            self.backend = self._create_backend()
        if self.adapter is None:
            self.adapter = self._create_adapter()

        # 3. Handler
        render = self.config.render
        self.handler = UpdateHandler(
            adapter=self.adapter,
            resolver=self.resolver,
            backend=self.backend,
            messages=self.messages,
            render_options=RenderOptions(
                max_length=render.max_length,
                default_source_label=render.default_source_label,
                explorer_url=render.explorer_url,
            ),
            debug=self.config.debug,
        )
        self.adapter.on_update(self.handler.handle)
        self.adapter.on_error(self.handler.handle_global_error)

        # 4. Transport
        await self.adapter.start()
        self._started = True
        logger.info(
            "vigil_bot_started",
            platform=self.adapter.platform_name,
            debug_mode=self.config.debug.debug_mode,
            show_full_json=self.config.debug.show_full_json,
        )

    async def stop(self, signal: str | None = None) -> None:
        """Gracefully shut down: transport first, then backend and storage."""
        if self._stopped:
            return
        self._stopped = True
        logger.info("vigil_bot_stopping", signal=signal)

        if self.adapter is not None and self._started:
            try:
                await self.adapter.stop()
            except Exception as e:
                logger.error("transport_stop_error", error=str(e))

        if self.backend is not None:
            try:
                await self.backend.close()
            except Exception as e:
                logger.error("backend_close_error", error=str(e))

        await self.db.close()
        logger.info("vigil_bot_stopped")

    def _create_backend(self) -> ConversationBackend:
        if not self.config.anthropic:
            raise ValueError("No 'anthropic' section in config and no backend supplied")

        from vigil_bot.ai.anthropic_backend import AnthropicBackend

        return AnthropicBackend(self.config.anthropic, self.config.backend, self.messages)

    def _create_adapter(self) -> MessengerAdapter:
        from vigil_bot.messenger.telegram import TelegramAdapter

        return TelegramAdapter(self.config.telegram)
