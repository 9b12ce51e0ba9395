from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable

from .types import IncomingMessage, OutgoingMessage


class ReplySink(ABC):
    """Where a routed reply goes. Delivery is attempted once; failures are not retried."""

    @abstractmethod
    async def send(self, text: str, *, ai_generated: bool = False) -> None:
        """Deliver ``text``; ``ai_generated`` marks replies produced by a model or agent."""

    async def typing(self) -> None:
        """Signal that a reply is being prepared. No-op unless the channel supports it."""


class CollectingSink(ReplySink):
    """Keeps replies in memory, for request/response transports."""

    def __init__(self, provider: str = "http", recipient_id: str = "") -> None:
        self.provider = provider
        self.recipient_id = recipient_id
        self.messages: list[OutgoingMessage] = []

    async def send(self, text: str, *, ai_generated: bool = False) -> None:
        self.messages.append(
            OutgoingMessage(
                provider=self.provider,
                recipient_id=self.recipient_id,
                text=text,
                metadata={"ai_generated": ai_generated},
            )
        )


class ChatProvider(ABC):
    """Base class for chat providers that can ingest updates and emit responses."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def parse_update(self, payload: Any) -> Iterable[IncomingMessage]:
        """Transform a raw webhook payload into normalized incoming messages."""

    @abstractmethod
    async def dispatch_responses(self, messages: Iterable[OutgoingMessage]) -> None:
        """Send messages back to the provider."""

    @abstractmethod
    async def handle_update(self, payload: Any) -> Iterable[OutgoingMessage]:
        """Route the update's messages and return the replies that were sent."""
