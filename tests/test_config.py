"""Tests for settings loading."""

import pytest

from agent_relay.config import Settings
from agent_relay.errors import ConfigurationMissing


class TestSettings:
    def test_reads_environment_aliases(self, monkeypatch):
        monkeypatch.setenv("PROJECT_ENDPOINT", "https://example/api/projects/p")
        monkeypatch.setenv("RUN_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("MCP_ALLOWED_TOOLS", "read_file, list_csv_files,,")

        settings = Settings(_env_file=None)

        assert settings.project_endpoint == "https://example/api/projects/p"
        assert settings.run_poll_interval == 2.5
        assert settings.allowed_tool_names == frozenset({"read_file", "list_csv_files"})

    def test_defaults(self, empty_settings):
        assert empty_settings.agents_api_version == "v1"
        assert empty_settings.mcp_server_label == "EnphaseMcp"
        assert empty_settings.run_max_wait == 300.0
        assert empty_settings.allowed_tool_names == frozenset()

    def test_require_lists_every_missing_env_var(self, settings):
        settings.project_endpoint = None
        settings.mcp_server_url = None

        with pytest.raises(ConfigurationMissing) as exc_info:
            settings.require("project_endpoint", "model_deployment_name", "mcp_server_url")

        assert exc_info.value.missing == ["PROJECT_ENDPOINT", "MCP_SERVER_URL"]
        assert "PROJECT_ENDPOINT, MCP_SERVER_URL" in str(exc_info.value)

    def test_require_passes_when_set(self, settings):
        settings.require("project_endpoint", "model_deployment_name")
