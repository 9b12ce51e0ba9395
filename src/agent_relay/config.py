from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationMissing


class Settings(BaseSettings):
    """Runtime configuration for the agent relay."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Hosted agent service (required by the "agent" and "mcp" paths)
    project_endpoint: str | None = Field(default=None, alias="PROJECT_ENDPOINT")
    model_deployment_name: str | None = Field(default=None, alias="MODEL_DEPLOYMENT_NAME")
    agents_api_version: str = Field(default="v1", alias="AGENTS_API_VERSION")
    # Static bearer for the agent service; when unset the Azure CLI is asked for one
    agent_token: str | None = Field(default=None, alias="AGENT_TOKEN")
    agent_token_scope: str = Field(default="https://ai.azure.com", alias="AGENT_TOKEN_SCOPE")

    # Tool bridge (required by the "mcp" path)
    mcp_server_url: str | None = Field(default=None, alias="MCP_SERVER_URL")
    mcp_server_label: str = Field(default="EnphaseMcp", alias="MCP_SERVER_LABEL")
    # Comma separated; empty means every tool the bridge exposes
    mcp_allowed_tools: str = Field(default="", alias="MCP_ALLOWED_TOOLS")
    mcp_token: str | None = Field(default=None, alias="MCP_TOKEN")
    mcp_token_url: str | None = Field(default=None, alias="MCP_TOKEN_URL")
    mcp_client_id: str | None = Field(default=None, alias="MCP_CLIENT_ID")
    mcp_client_secret: str | None = Field(default=None, alias="MCP_CLIENT_SECRET")
    mcp_token_resource: str | None = Field(default=None, alias="MCP_TOKEN_RESOURCE")

    # Run lifecycle
    run_poll_interval: float = Field(default=1.0, alias="RUN_POLL_INTERVAL")
    run_max_wait: float = Field(default=300.0, alias="RUN_MAX_WAIT")
    run_max_poll_retries: int = Field(default=3, alias="RUN_MAX_POLL_RETRIES")

    # Completion models ("model" and "goldfish" paths)
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")

    # Local coding agent ("claude" path)
    local_agent_command: str = Field(
        default='claude -p "User asks: {prompt}" --dangerously-skip-permissions',
        alias="LOCAL_AGENT_COMMAND",
    )
    local_agent_timeout: float = Field(default=600.0, alias="LOCAL_AGENT_TIMEOUT")

    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_webhook_secret: str | None = Field(
        default=None, alias="TELEGRAM_WEBHOOK_SECRET"
    )
    telegram_api_base_url: str | None = Field(
        default=None, alias="TELEGRAM_API_BASE_URL"
    )

    # FastAPI configuration
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8080, alias="APP_PORT")
    debug: bool = Field(default=False, alias="DEBUG")

    @property
    def allowed_tool_names(self) -> frozenset[str]:
        return frozenset(name.strip() for name in self.mcp_allowed_tools.split(",") if name.strip())

    def require(self, *names: str) -> None:
        """Raise ConfigurationMissing listing the env vars of every unset field in ``names``."""
        missing = []
        for name in names:
            if not getattr(self, name):
                field = type(self).model_fields[name]
                missing.append(field.alias or name.upper())
        if missing:
            raise ConfigurationMissing(missing)


@lru_cache
def get_settings() -> Settings:
    """Return memoized settings so multiple imports share a single instance."""

    return Settings()  # type: ignore[call-arg]
