"""Bearer credential providers for the agent service and the tool bridge.

Tokens are short-lived, so callers ask for one every time they attach it to a
request instead of holding on to a value.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import time
from abc import ABC, abstractmethod
from typing import Any, Protocol

import httpx

from .config import Settings
from .errors import AgentRelayError, ConfigurationMissing

logger = logging.getLogger(__name__)

# Refresh this many seconds before the issuer's expiry
EXPIRY_MARGIN = 60.0


class CredentialError(AgentRelayError):
    """A bearer token could not be obtained."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class CredentialProvider(Protocol):
    async def get_token(self) -> str: ...


def bearer_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class StaticTokenProvider:
    """Returns a token supplied through configuration."""

    def __init__(self, token: str) -> None:
        if not token:
            raise ValueError("StaticTokenProvider requires a non-empty token")
        self._token = token

    async def get_token(self) -> str:
        return self._token


class _CachingProvider(ABC):
    """Caches the fetched token until shortly before it expires."""

    def __init__(self, *, clock=time.monotonic) -> None:
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    async def get_token(self) -> str:
        async with self._lock:
            if self._token and self._clock() < self._expires_at - EXPIRY_MARGIN:
                return self._token
            token, lifetime = await self._fetch()
            self._token = token
            self._expires_at = self._clock() + lifetime
            return token

    @abstractmethod
    async def _fetch(self) -> tuple[str, float]:
        """Return a fresh token and its lifetime in seconds."""


class ClientCredentialsTokenProvider(_CachingProvider):
    """OAuth2 ``client_credentials`` grant against the tool bridge's token endpoint."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        *,
        resource: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock=time.monotonic,
    ) -> None:
        super().__init__(clock=clock)
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.resource = resource
        self._transport = transport

    async def _fetch(self) -> tuple[str, float]:
        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.resource:
            form["resource"] = self.resource
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self.token_url, data=form, timeout=15.0)
        except httpx.HTTPError as exc:
            raise CredentialError(f"Token request to {self.token_url} failed: {exc}", exc) from exc

        if not response.is_success:
            raise CredentialError(
                f"Token request failed ({response.status_code}): {response.text[:200]}"
            )
        data = _json_object(response.content, "Token response")
        token = data.get("access_token")
        if not token:
            raise CredentialError("Token response did not include an access_token")
        try:
            lifetime = float(data.get("expires_in") or 300)
        except (TypeError, ValueError) as exc:
            raise CredentialError(f"Token response has an invalid expires_in: {exc}", exc) from exc
        logger.info("[CREDENTIALS] Fetched tool bridge token (expires in %.0fs)", lifetime)
        return token, lifetime


class AzureCliTokenProvider(_CachingProvider):
    """Asks the signed-in Azure CLI (``az login``) for an access token."""

    def __init__(self, scope: str, *, clock=time.monotonic) -> None:
        super().__init__(clock=clock)
        self.scope = scope

    async def _fetch(self) -> tuple[str, float]:
        az = shutil.which("az")
        if not az:
            raise CredentialError("Azure CLI ('az') is not installed; set AGENT_TOKEN instead.")
        try:
            process = await asyncio.create_subprocess_exec(
                az,
                "account",
                "get-access-token",
                "--resource",
                self.scope,
                "--output",
                "json",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=30)
        except (OSError, asyncio.TimeoutError) as exc:
            raise CredentialError(f"Azure CLI token request failed: {exc}", exc) from exc

        if process.returncode != 0:
            raise CredentialError(
                f"Azure CLI token request failed: {stderr.decode(errors='replace').strip()}"
            )
        data = _json_object(stdout, "Azure CLI output")
        token = data.get("accessToken")
        if not token:
            raise CredentialError("Azure CLI output did not include an accessToken")
        return token, _cli_lifetime(data.get("expires_on"))


def _json_object(raw: bytes, what: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise CredentialError(f"{what} is not valid JSON: {exc}", exc) from exc
    if not isinstance(data, dict):
        raise CredentialError(f"{what} is not a JSON object")
    return data


def _cli_lifetime(expires_on: Any) -> float:
    # Older CLI versions only print a local datetime in expiresOn
    try:
        lifetime = float(expires_on) - time.time()
    except (TypeError, ValueError):
        return 300.0
    return max(lifetime, 0.0)


def build_agent_credentials(settings: Settings) -> CredentialProvider:
    if settings.agent_token:
        return StaticTokenProvider(settings.agent_token)
    return AzureCliTokenProvider(settings.agent_token_scope)


def build_tool_credentials(settings: Settings) -> CredentialProvider:
    """Credential for the tool bridge: a client_credentials grant if configured, else MCP_TOKEN."""
    if settings.mcp_token_url:
        settings.require("mcp_client_id", "mcp_client_secret")
        return ClientCredentialsTokenProvider(
            settings.mcp_token_url,
            settings.mcp_client_id or "",
            settings.mcp_client_secret or "",
            resource=settings.mcp_token_resource,
        )
    if settings.mcp_token:
        return StaticTokenProvider(settings.mcp_token)
    raise ConfigurationMissing(["MCP_TOKEN or MCP_TOKEN_URL"])
