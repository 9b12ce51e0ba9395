"""REST client for the hosted agent service (agents, threads, messages, runs)."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from ..credentials import CredentialProvider, bearer_header
from ..errors import AgentServiceError
from .types import (
    AgentDefinition,
    Message,
    Run,
    ToolApprovalDecision,
    ToolDefinition,
    ToolResourceBinding,
    tool_resources_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class AgentsClient:
    """Thin async wrapper over the agent service REST API.

    Every request carries a bearer token fetched from ``credentials`` at call time.
    Non-success responses raise :class:`AgentServiceError`; transport failures
    surface as ``httpx.HTTPError``.
    """

    def __init__(
        self,
        endpoint: str,
        credentials: CredentialProvider,
        *,
        api_version: str = "v1",
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version
        self._credentials = credentials
        self._http = httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        token = await self._credentials.get_token()
        query = {"api-version": self.api_version, **(params or {})}
        response = await self._http.request(
            method,
            path,
            json=json,
            params=query,
            headers={**bearer_header(token), "Content-Type": "application/json"},
        )
        if not response.is_success:
            raise AgentServiceError(
                f"{method} {path} failed ({response.status_code}): {response.text[:500]}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return {}
        return response.json()

    # Agents

    async def create_agent(
        self,
        *,
        model: str,
        name: str,
        instructions: str,
        tools: Iterable[ToolDefinition] = (),
    ) -> AgentDefinition:
        payload: dict[str, Any] = {"model": model, "name": name, "instructions": instructions}
        tool_payload = [tool.to_dict() for tool in tools]
        if tool_payload:
            payload["tools"] = tool_payload
        data = await self._request("POST", "/assistants", json=payload)
        return AgentDefinition.from_dict(data)

    async def delete_agent(self, agent_id: str) -> None:
        await self._request("DELETE", f"/assistants/{agent_id}")

    # Threads and messages

    async def create_thread(self) -> str:
        data = await self._request("POST", "/threads", json={})
        return data["id"]

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/threads/{thread_id}")

    async def append_message(self, thread_id: str, role: str, text: str) -> Message:
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            json={"role": role, "content": text},
        )
        return Message.from_dict(data)

    async def list_messages(
        self, thread_id: str, *, order: str = "desc", limit: int = 20
    ) -> list[Message]:
        data = await self._request(
            "GET",
            f"/threads/{thread_id}/messages",
            params={"order": order, "limit": limit},
        )
        return [Message.from_dict(raw) for raw in data.get("data") or []]

    # Runs

    async def create_run(
        self,
        thread_id: str,
        agent_id: str,
        tool_resources: list[ToolResourceBinding] | None = None,
    ) -> Run:
        payload: dict[str, Any] = {"assistant_id": agent_id}
        if tool_resources:
            payload["tool_resources"] = tool_resources_payload(tool_resources)
        data = await self._request("POST", f"/threads/{thread_id}/runs", json=payload)
        return Run.from_dict(data)

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        data = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")
        return Run.from_dict(data)

    async def submit_tool_approvals(
        self,
        thread_id: str,
        run_id: str,
        decisions: list[ToolApprovalDecision],
    ) -> Run:
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/runs/{run_id}/submit_tool_outputs",
            json={"tool_approvals": [decision.to_dict() for decision in decisions]},
        )
        return Run.from_dict(data)

    async def cancel_run(self, thread_id: str, run_id: str) -> Run:
        data = await self._request("POST", f"/threads/{thread_id}/runs/{run_id}/cancel")
        return Run.from_dict(data)
