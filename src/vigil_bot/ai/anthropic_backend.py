"""Conversational backend on the Anthropic Messages API."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

import anthropic

from vigil_bot.ai.backend import (
    AssistantMessage,
    BackendOptions,
    BackendResult,
    ConversationBackend,
    ProgressCallback,
)
from vigil_bot.config import AnthropicConfig, BackendConfig
from vigil_bot.core.callbacks import USE_TOOLS_ALWAYS
from vigil_bot.core.errors import BackendError
from vigil_bot.core.types import MessageRole
from vigil_bot.log import get_logger
from vigil_bot.storage.message_repo import MessageRepository
from vigil_bot.storage.models import Message

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are Vybe Vigilante, an assistant for the Solana ecosystem. "
    "You help users analyze tokens, wallets and market movements."
)

ENVELOPE_INSTRUCTIONS = """
Always answer with a single JSON object and nothing else:
{"response": "<your answer for the user>", "actionData": <object with structured data or null>}

actionData may use these shapes:
- {"recommendations": [{"symbol", "name", "address", "price_usd", "price_change_1d", "marketCap", "reason"}], "criteria", "risk_level", "timeframe", "source"}
- {"token": {"symbol", "name", "address", "price_usd", "price_change_1d", "marketCap", "volume_24h", "holders"}, "source"}
- {"wallet": "<address>", "tokens": {"totalTokenValueUsd", "totalTokenValueUsd1dChange", "data": [{"symbol", "balance", "valueUsd"}]}, "source"}
- {"alert_created": true, "token_symbol", "condition_type", "threshold_value"}
"source" is {"api", "endpoint", "timestamp"} when the data came from an API."""

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


def parse_envelope(raw: str) -> tuple[str, Optional[dict[str, Any]]]:
    """Split a model reply into (text, structured data).

    Replies that are not a ``{"response": ...}`` object are returned as plain text.
    """
    candidate = raw.strip()
    match = _FENCED_JSON.search(candidate)
    if match:
        candidate = match.group(1)
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return raw.strip(), None
    if not isinstance(payload, dict) or "response" not in payload:
        return raw.strip(), None

    text = str(payload.get("response") or "")
    data = payload.get("actionData")
    return text, data if isinstance(data, dict) and data else None


def build_messages(history: list[Message]) -> list[dict[str, Any]]:
    """Alternating user/assistant turns, starting with a user turn."""
    messages: list[dict[str, Any]] = []
    for record in history:
        if not record.text:
            continue
        role = record.role.value
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + record.text
        else:
            messages.append({"role": role, "content": record.text})
    while messages and messages[0]["role"] != MessageRole.USER.value:
        messages.pop(0)
    return messages


class AnthropicBackend(ConversationBackend):
    """Answers with one Messages API call over the chat's recent history."""

    def __init__(
        self,
        config: AnthropicConfig,
        settings: BackendConfig,
        messages: MessageRepository,
        client: Any = None,
    ):
        self._client = client or anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )
        self._settings = settings
        self._messages = messages

    @property
    def model_name(self) -> str:
        return self._settings.model

    async def send_message(
        self,
        user_id: int,
        chat_id: int,
        text: str,
        session_id: int,
        progress: Optional[ProgressCallback] = None,
        options: Optional[BackendOptions] = None,
    ) -> BackendResult:
        log = logger.bind(chat_id=chat_id, user_id=user_id, session_id=session_id)

        await _emit(progress, "setup", "Preparing your request...")
        await self._messages.save(
            Message(chat_id=chat_id, user_id=user_id, role=MessageRole.USER, text=text)
        )

        await _emit(progress, "memory_consultation", "Reviewing our conversation...")
        history = await self._messages.get_chat_history(chat_id, limit=self._settings.history_limit)

        await _emit(progress, "main_consultation", "Thinking about your question...")
        try:
            response = await self._client.messages.create(
                model=self._settings.model,
                max_tokens=self._settings.max_tokens,
                temperature=self._settings.temperature,
                system=self._system_prompt(options),
                messages=build_messages(history),
            )
        except anthropic.APIError as e:
            log.error("api_request_failed", error=str(e))
            await _emit(progress, "error", "The assistant is unavailable right now.")
            raise BackendError(f"Anthropic request failed: {e}") from e

        log.debug(
            "api_response",
            model=self._settings.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

        await _emit(progress, "synthesis", "Putting the answer together...")
        raw = "".join(block.text for block in response.content if block.type == "text")
        reply, structured_data = parse_envelope(raw)

        await _emit(progress, "finalizing")
        metas: dict[str, Any] = {"model": self._settings.model}
        if structured_data:
            metas["structuredData"] = structured_data
        message_id = await self._messages.save(
            Message(
                chat_id=chat_id,
                user_id=user_id,
                role=MessageRole.ASSISTANT,
                text=reply,
                metas=metas,
            )
        )

        await _emit(progress, "complete")
        return BackendResult(
            assistant_message=AssistantMessage(text=reply, id=message_id),
            structured_data=structured_data,
        )

    def _system_prompt(self, options: Optional[BackendOptions]) -> str:
        prompt = (self._settings.system_prompt or DEFAULT_SYSTEM_PROMPT) + "\n" + ENVELOPE_INSTRUCTIONS
        if options and options.system_directive == USE_TOOLS_ALWAYS:
            prompt += "\n\nBase the answer on current market data rather than general knowledge."
        if options and options.priority_tools:
            prompt += f"\nFocus on: {', '.join(options.priority_tools)}."
        return prompt

    async def close(self) -> None:
        await self._client.close()


async def _emit(progress: Optional[ProgressCallback], stage: str, detail: Optional[str] = None) -> None:
    if progress is None:
        return
    try:
        await progress(stage, detail)
    except Exception as e:
        logger.warning("progress_callback_failed", stage=stage, error=str(e))
