from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Iterable

import httpx

from ..config import Settings
from .base import ChatProvider, ReplySink
from .types import IncomingMessage, OutgoingMessage

if TYPE_CHECKING:
    from ..router import ProviderRouter

logger = logging.getLogger(__name__)

# Telegram rejects longer messages
MAX_MESSAGE_LENGTH = 4096


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks of at most ``limit`` characters, preferring line breaks."""
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining or not chunks:
        chunks.append(remaining)
    return chunks


class TelegramReplySink(ReplySink):
    def __init__(self, provider: "TelegramProvider", chat_id: str) -> None:
        self.provider = provider
        self.chat_id = chat_id
        self.sent: list[OutgoingMessage] = []

    async def send(self, text: str, *, ai_generated: bool = False) -> None:
        message = OutgoingMessage(
            provider=self.provider.name,
            recipient_id=self.chat_id,
            text=text,
            metadata={"ai_generated": ai_generated},
        )
        await self.provider.dispatch_responses([message])
        self.sent.append(message)

    async def typing(self) -> None:
        await self.provider.send_typing_indicator(self.chat_id)


class TelegramProvider(ChatProvider):
    def __init__(
        self,
        settings: Settings,
        router: "ProviderRouter",
        *,
        api_base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__("telegram")
        self.settings = settings
        self.router = router
        self.bot_token = settings.telegram_bot_token
        self.api_base_url = api_base_url or "https://api.telegram.org"
        self._transport = transport
        if not self.bot_token:
            raise ValueError("Telegram bot token is not configured.")
        # Deduplication: Telegram retries webhooks if response is slow; skip already-processed update_ids
        self._processed_update_ids: set[int] = set()
        self._processed_update_ids_order: deque[int] = deque(maxlen=10_000)

    def _url(self, method: str) -> str:
        return f"{self.api_base_url}/bot{self.bot_token}/{method}"

    async def send_typing_indicator(self, chat_id: str) -> None:
        """Send typing indicator to show the bot is processing."""
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                await client.post(
                    self._url("sendChatAction"),
                    json={"chat_id": chat_id, "action": "typing"},
                    timeout=5.0,
                )
        except Exception as e:
            logger.debug("Failed to send typing indicator: %s", e)

    def _is_duplicate(self, update_id: int | None) -> bool:
        if update_id is None:
            return False
        if update_id in self._processed_update_ids:
            return True
        # Evict oldest if at capacity (deque has maxlen; keep set in sync)
        if len(self._processed_update_ids_order) == self._processed_update_ids_order.maxlen:
            old = self._processed_update_ids_order[0]
            self._processed_update_ids.discard(old)
        self._processed_update_ids.add(update_id)
        self._processed_update_ids_order.append(update_id)
        return False

    async def parse_update(self, payload: dict) -> Iterable[IncomingMessage]:
        message = payload.get("message") or payload.get("edited_message")
        if not message:
            return []
        chat = message.get("chat") or {}
        chat_id = str(chat.get("id"))
        metadata = {
            "username": chat.get("username"),
            "first_name": chat.get("first_name"),
            "message_id": message.get("message_id"),
        }
        return [
            IncomingMessage(
                provider=self.name,
                sender_id=chat_id,
                text=message.get("text") or message.get("caption"),
                metadata=metadata,
            )
        ]

    async def handle_update(self, payload: dict) -> Iterable[OutgoingMessage]:
        update_id = payload.get("update_id")
        if self._is_duplicate(update_id):
            logger.info("[TELEGRAM] Skipping duplicate update_id=%s", update_id)
            return []

        responses: list[OutgoingMessage] = []
        for message in await self.parse_update(payload):
            logger.info("[TELEGRAM] Message from chat %s: %s", message.sender_id, (message.text or "")[:200])
            sink = TelegramReplySink(self, message.sender_id)
            await self.router.dispatch(message.text or "", sink)
            responses.extend(sink.sent)
        return responses

    async def dispatch_responses(self, messages: Iterable[OutgoingMessage]) -> None:
        async with httpx.AsyncClient(transport=self._transport) as client:
            for message in messages:
                for chunk in split_message(message.text):
                    response = await client.post(
                        self._url("sendMessage"),
                        json={"chat_id": message.recipient_id, "text": chunk},
                        timeout=15.0,
                    )
                    if not response.is_success:
                        logger.warning(
                            "[TELEGRAM] Failed to send message to %s (%s): %s",
                            message.recipient_id,
                            response.status_code,
                            response.text[:200],
                        )
                        break
                    data = response.json().get("result") or {}
                    if data.get("message_id"):
                        message.metadata["telegram_message_id"] = data["message_id"]
