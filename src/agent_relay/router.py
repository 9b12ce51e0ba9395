"""Prefix-based routing of chat messages to a reasoning provider."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable

from .chat.base import ReplySink
from .config import Settings
from .errors import AgentRelayError
from .foundry.session import AgentOrchestrator
from .local_agent import run_local_agent
from .models import ChatModelProvider

logger = logging.getLogger(__name__)


class Route(str, Enum):
    MODEL = "model"
    GOLDFISH = "goldfish"
    CLAUDE = "claude"
    AGENT = "agent"
    MCP = "mcp"


HELP_TEXT = (
    "**Choose your AI by starting your prompt with:**\n\n"
    "🧠 **model** - Chat against a base model (full conversation history -> memory)\n"
    "🐠 **goldfish** - Chat against a base model (only last question -> no memory)\n"
    "🤖 **claude** - Local Claude Code + local MCP server (no chat memory)\n"
    "☁️ **agent** - Hosted agent (no tools)\n"
    "🔧 **mcp** - Hosted agent + remote MCP tool bridge\n\n"
    "**Example:** `claude When did I first generate 200W yesterday?`"
)

Handler = Callable[[str], Awaitable[str]]


def parse_command(text: str) -> tuple[Route | None, str]:
    """Split ``text`` into its route (matched case-insensitively) and the remaining prompt."""
    stripped = (text or "").strip()
    if not stripped:
        return None, ""
    head, _, rest = stripped.partition(" ")
    # Allow the token to be glued to a newline, e.g. "mcp\nquestion"
    head, _, glued = head.partition("\n")
    prompt = f"{glued} {rest}".strip() if glued else rest.strip()
    try:
        return Route(head.lower()), prompt
    except ValueError:
        return None, stripped


class ProviderRouter:
    """Selects a provider from the leading token and delivers its reply to a sink."""

    def __init__(
        self,
        settings: Settings,
        *,
        models: ChatModelProvider | None = None,
        orchestrator: AgentOrchestrator | None = None,
        local_agent: Callable[[str, Settings], Awaitable[str]] = run_local_agent,
    ) -> None:
        self.settings = settings
        self.models = models or ChatModelProvider(settings)
        self.orchestrator = orchestrator or AgentOrchestrator(settings)
        self._local_agent = local_agent
        self._handlers: dict[Route, Handler] = {
            Route.MODEL: self.models.ask_with_memory,
            Route.GOLDFISH: self.models.ask_once,
            Route.CLAUDE: self._ask_local_agent,
            Route.AGENT: self.orchestrator.ask_plain,
            Route.MCP: self.orchestrator.ask_with_tools,
        }

    async def _ask_local_agent(self, prompt: str) -> str:
        return await self._local_agent(prompt, self.settings)

    async def dispatch(self, text: str, sink: ReplySink) -> None:
        route, prompt = parse_command(text)
        if route is None or not prompt:
            await self._deliver(sink, HELP_TEXT, ai_generated=False)
            return

        await sink.typing()
        logger.info("[ROUTER] Routing message to '%s'", route.value)
        try:
            reply = await self._handlers[route](prompt)
        except AgentRelayError as exc:
            logger.warning("[ROUTER] '%s' failed: %s", route.value, exc)
            await self._deliver(sink, f"Error: {exc}", ai_generated=False)
            return
        except Exception as exc:
            logger.exception("[ROUTER] '%s' raised unexpectedly", route.value)
            await self._deliver(sink, f"Error: {exc}", ai_generated=False)
            return
        await self._deliver(sink, reply, ai_generated=True)

    async def _deliver(self, sink: ReplySink, text: str, *, ai_generated: bool) -> None:
        try:
            await sink.send(text, ai_generated=ai_generated)
        except Exception:
            logger.exception("[ROUTER] Failed to deliver reply")

    async def close(self) -> None:
        await self.orchestrator.close()
