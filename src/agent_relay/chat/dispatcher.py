from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..config import Settings
from .base import ChatProvider
from .telegram import TelegramProvider
from .types import OutgoingMessage

if TYPE_CHECKING:
    from ..router import ProviderRouter

logger = logging.getLogger(__name__)


class ChatDispatcher:
    """Hands inbound webhook payloads to the chat provider registered under that name."""

    def __init__(self, providers: list[ChatProvider] | None = None) -> None:
        self._providers: dict[str, ChatProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ChatProvider) -> None:
        logger.info("[CHAT] Registered provider '%s'", provider.name)
        self._providers[provider.name] = provider

    def get(self, name: str) -> ChatProvider | None:
        return self._providers.get(name)

    @property
    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    async def handle_update(self, provider_name: str, payload: Any) -> list[OutgoingMessage]:
        provider = self.get(provider_name)
        if provider is None:
            raise ValueError(f"Provider '{provider_name}' is not registered.")
        replies = list(await provider.handle_update(payload))
        logger.info("[CHAT] %s update produced %d reply(ies)", provider_name, len(replies))
        return replies


def build_dispatcher(settings: Settings, router: "ProviderRouter") -> ChatDispatcher:
    """Dispatcher with every chat provider whose credentials are configured."""
    providers: list[ChatProvider] = []
    if settings.telegram_bot_token:
        providers.append(
            TelegramProvider(settings, router, api_base_url=settings.telegram_api_base_url)
        )
    else:
        logger.info("[CHAT] TELEGRAM_BOT_TOKEN not set; Telegram webhook disabled")
    return ChatDispatcher(providers)
