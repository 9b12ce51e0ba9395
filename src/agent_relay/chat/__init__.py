"""Chat transports that feed messages into the provider router."""

from .base import ChatProvider, CollectingSink, ReplySink
from .dispatcher import ChatDispatcher, build_dispatcher
from .telegram import TelegramProvider
from .types import IncomingMessage, OutgoingMessage

__all__ = [
    "ChatDispatcher",
    "ChatProvider",
    "CollectingSink",
    "IncomingMessage",
    "OutgoingMessage",
    "ReplySink",
    "TelegramProvider",
    "build_dispatcher",
]
