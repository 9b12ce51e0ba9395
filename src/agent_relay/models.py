"""Direct chat-completion paths: one with conversation memory, one without."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from .config import Settings

logger = logging.getLogger(__name__)

MEMORY_SYSTEM_PROMPT = "You are a helpful assistant model."
GOLDFISH_SYSTEM_PROMPT = "You are a Goldfish Model."


def build_model(settings: Settings) -> BaseChatModel:
    """Instantiate the Gemini chat model used by both completion paths."""
    settings.require("google_api_key")
    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        api_key=settings.google_api_key,
        temperature=1.0,
        top_p=1.0,
        max_output_tokens=4096,
        timeout=60,
        max_retries=2,
    )


def response_text(content: Any) -> str:
    """Flatten a chat model response content (string or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content) if content else ""


class ChatModelProvider:
    """Both completion paths share one model client; only the memory path keeps history."""

    def __init__(
        self,
        settings: Settings,
        *,
        model_factory: Callable[[Settings], BaseChatModel] = build_model,
    ) -> None:
        self.settings = settings
        self._model_factory = model_factory
        self._model: BaseChatModel | None = None
        self.history: list[BaseMessage] = [SystemMessage(content=MEMORY_SYSTEM_PROMPT)]
        self._history_lock = asyncio.Lock()

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            self._model = self._model_factory(self.settings)
        return self._model

    async def ask_with_memory(self, text: str) -> str:
        async with self._history_lock:
            question = HumanMessage(content=text)
            response = await self.model.ainvoke([*self.history, question])
            reply = response_text(response.content)
            self.history.extend([question, AIMessage(content=reply)])
            logger.info("[MODEL] Memory conversation now has %d messages", len(self.history))
            return reply

    async def ask_once(self, text: str) -> str:
        messages = [SystemMessage(content=GOLDFISH_SYSTEM_PROMPT), HumanMessage(content=text)]
        response = await self.model.ainvoke(messages)
        return response_text(response.content)
