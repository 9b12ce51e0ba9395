"""Shared test fixtures and configuration."""

from __future__ import annotations

import pytest

from agent_relay.config import Settings
from tests.helpers import CountingCredentials, FakeAgentsClient


@pytest.fixture
def settings():
    """Fully configured settings that never read a .env file."""
    return Settings(
        _env_file=None,
        PROJECT_ENDPOINT="https://example.services.ai.azure.com/api/projects/demo",
        MODEL_DEPLOYMENT_NAME="gpt-4o",
        AGENT_TOKEN="agent-token",
        MCP_SERVER_URL="https://bridge.example.com/mcp/",
        MCP_TOKEN="tool-token",
        GOOGLE_API_KEY="google-key",
        RUN_POLL_INTERVAL=0.5,
    )


@pytest.fixture
def empty_settings():
    return Settings(_env_file=None)


@pytest.fixture
def fake_client():
    return FakeAgentsClient()


@pytest.fixture
def tool_credentials():
    return CountingCredentials()


@pytest.fixture
def sleeps():
    """Records requested delays instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep
