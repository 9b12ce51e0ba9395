"""Tests for prefix routing and reply delivery."""

from __future__ import annotations

import pytest

from agent_relay.chat.base import CollectingSink, ReplySink
from agent_relay.errors import ConfigurationMissing, RunFailed
from agent_relay.router import HELP_TEXT, ProviderRouter, Route, parse_command
from tests.helpers import make_run


class StubModels:
    def __init__(self) -> None:
        self.memory_prompts: list[str] = []
        self.once_prompts: list[str] = []

    async def ask_with_memory(self, text: str) -> str:
        self.memory_prompts.append(text)
        return f"memory:{text}"

    async def ask_once(self, text: str) -> str:
        self.once_prompts.append(text)
        return f"once:{text}"


class StubOrchestrator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.plain: list[str] = []
        self.tools: list[str] = []
        self.closed = False

    async def ask_plain(self, text: str) -> str:
        self.plain.append(text)
        return f"agent:{text}"

    async def ask_with_tools(self, text: str) -> str:
        if self.error is not None:
            raise self.error
        self.tools.append(text)
        return f"mcp:{text}"

    async def close(self) -> None:
        self.closed = True


class TypingSink(CollectingSink):
    def __init__(self) -> None:
        super().__init__()
        self.typing_calls = 0

    async def typing(self) -> None:
        self.typing_calls += 1


class BrokenSink(ReplySink):
    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, text: str, *, ai_generated: bool = False) -> None:
        self.attempts += 1
        raise RuntimeError("channel unavailable")


@pytest.fixture
def local_calls():
    return []


@pytest.fixture
def router(settings, local_calls):
    async def local_agent(prompt, _settings):
        local_calls.append(prompt)
        return f"claude:{prompt}"

    return ProviderRouter(
        settings,
        models=StubModels(),
        orchestrator=StubOrchestrator(),
        local_agent=local_agent,
    )


class TestParseCommand:
    """Tests for parse_command."""

    @pytest.mark.parametrize(
        "text, route, prompt",
        [
            ("model what is 2+2", Route.MODEL, "what is 2+2"),
            ("goldfish hi", Route.GOLDFISH, "hi"),
            ("claude When did I first generate 200W?", Route.CLAUDE, "When did I first generate 200W?"),
            ("agent hello", Route.AGENT, "hello"),
            ("mcp list the csv files", Route.MCP, "list the csv files"),
            ("MCP list", Route.MCP, "list"),
            ("  Agent   spaced  ", Route.AGENT, "spaced"),
            ("mcp\nmultiline question", Route.MCP, "multiline question"),
        ],
    )
    def test_known_prefixes(self, text, route, prompt):
        assert parse_command(text) == (route, prompt)

    @pytest.mark.parametrize("text", ["", "   ", "hello there", "modelx hi", "assistant hi"])
    def test_unknown_or_empty(self, text):
        route, _ = parse_command(text)
        assert route is None

    def test_prefix_only_has_empty_prompt(self):
        assert parse_command("model") == (Route.MODEL, "")


class TestProviderRouterDispatch:
    """Tests for ProviderRouter.dispatch."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("model hi", "memory:hi"),
            ("goldfish hi", "once:hi"),
            ("claude hi", "claude:hi"),
            ("agent hi", "agent:hi"),
            ("mcp hi", "mcp:hi"),
        ],
    )
    async def test_routes_to_provider(self, router, text, expected):
        sink = CollectingSink()

        await router.dispatch(text, sink)

        assert [m.text for m in sink.messages] == [expected]
        assert sink.messages[0].ai_generated is True

    @pytest.mark.asyncio
    async def test_unknown_prefix_gets_help(self, router):
        sink = TypingSink()

        await router.dispatch("hello there", sink)

        assert [m.text for m in sink.messages] == [HELP_TEXT]
        assert sink.messages[0].ai_generated is False
        assert sink.typing_calls == 0
        assert router.models.memory_prompts == []
        assert router.orchestrator.plain == []

    @pytest.mark.asyncio
    async def test_prefix_without_prompt_gets_help(self, router):
        sink = CollectingSink()

        await router.dispatch("mcp", sink)

        assert sink.messages[0].text == HELP_TEXT
        assert router.orchestrator.tools == []

    @pytest.mark.asyncio
    async def test_typing_indicator_before_reply(self, router):
        sink = TypingSink()

        await router.dispatch("goldfish hi", sink)

        assert sink.typing_calls == 1

    @pytest.mark.asyncio
    async def test_provider_error_is_reported_to_user(self, settings):
        failure = RunFailed(make_run("failed", last_error="quota exceeded"))
        router = ProviderRouter(settings, models=StubModels(), orchestrator=StubOrchestrator(error=failure))
        sink = CollectingSink()

        await router.dispatch("mcp list files", sink)

        (message,) = sink.messages
        assert message.text.startswith("Error: ")
        assert "quota exceeded" in message.text
        assert message.ai_generated is False

    @pytest.mark.asyncio
    async def test_configuration_error_names_settings(self, settings):
        failure = ConfigurationMissing(["MCP_SERVER_URL"])
        router = ProviderRouter(settings, models=StubModels(), orchestrator=StubOrchestrator(error=failure))
        sink = CollectingSink()

        await router.dispatch("mcp list files", sink)

        assert "MCP_SERVER_URL" in sink.messages[0].text

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self, settings):
        router = ProviderRouter(
            settings, models=StubModels(), orchestrator=StubOrchestrator(error=KeyError("boom"))
        )
        sink = CollectingSink()

        await router.dispatch("mcp list files", sink)

        assert sink.messages[0].text.startswith("Error: ")

    @pytest.mark.asyncio
    async def test_delivery_failure_is_not_retried(self, router):
        sink = BrokenSink()

        await router.dispatch("model hi", sink)

        assert sink.attempts == 1

    @pytest.mark.asyncio
    async def test_memory_route_keeps_order_of_prompts(self, router):
        sink = CollectingSink()

        await router.dispatch("model first", sink)
        await router.dispatch("goldfish aside", sink)
        await router.dispatch("model second", sink)

        assert router.models.memory_prompts == ["first", "second"]
        assert router.models.once_prompts == ["aside"]

    @pytest.mark.asyncio
    async def test_close_tears_down_orchestrator(self, router):
        await router.close()

        assert router.orchestrator.closed is True
