"""Long-lived agent + thread pairs and their lifecycle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ..config import Settings
from ..credentials import CredentialProvider, bearer_header, build_agent_credentials, build_tool_credentials
from ..errors import AgentServiceError, SubmissionFailed, TeardownFailed
from .client import AgentsClient
from .extract import extract_latest_reply
from .runs import ApprovalPolicy, RunExecutor, RunPoller, approve_all
from .types import AgentDefinition, ToolDefinition, ToolResourceBinding

logger = logging.getLogger(__name__)

PLAIN_AGENT_NAME = "My Agent"
PLAIN_AGENT_INSTRUCTIONS = "You are a helpful agent that can assist users."
TOOL_AGENT_NAME = "My Agent with MCP"
TOOL_AGENT_INSTRUCTIONS = (
    "You are a helpful agent that can use MCP tools to assist users. "
    "Use the available MCP tools to answer questions and perform tasks."
)


@dataclass(frozen=True, slots=True)
class AgentSpec:
    name: str
    instructions: str
    model: str
    tools: tuple[ToolDefinition, ...] = ()


class AgentSession:
    """One remote agent definition and the thread it talks on.

    Both are created on first use. Turns on the thread are serialised: a new run
    is only submitted once the previous one reached a terminal status.
    """

    def __init__(
        self,
        client: AgentsClient,
        spec: AgentSpec,
        poller: RunPoller,
        *,
        tool_credentials: Optional[CredentialProvider] = None,
    ) -> None:
        self.client = client
        self.spec = spec
        self.poller = poller
        self.tool_credentials = tool_credentials
        self.executor = RunExecutor(client)
        self.agent: AgentDefinition | None = None
        self.thread_id: str | None = None
        self._init_lock = asyncio.Lock()
        self._turn_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.agent is not None and self.thread_id is not None

    async def ensure_ready(self) -> tuple[AgentDefinition, str]:
        """Create the agent and its thread on first use; return both."""
        if self.agent is not None and self.thread_id is not None:
            return self.agent, self.thread_id
        async with self._init_lock:
            agent, thread_id = self.agent, self.thread_id
            try:
                if agent is None:
                    agent = self.agent = await self.client.create_agent(
                        model=self.spec.model,
                        name=self.spec.name,
                        instructions=self.spec.instructions,
                        tools=self.spec.tools,
                    )
                    logger.info("[SESSION] Agent '%s' created with ID: %s", self.spec.name, agent.id)
                if thread_id is None:
                    thread_id = self.thread_id = await self.client.create_thread()
                    logger.info("[SESSION] Thread for '%s' created with ID: %s", self.spec.name, thread_id)
            except (httpx.HTTPError, AgentServiceError) as exc:
                raise SubmissionFailed(f"Could not set up agent '{self.spec.name}': {exc}", exc) from exc
            return agent, thread_id

    async def tool_resources(self) -> list[ToolResourceBinding] | None:
        """Fresh per-run header bindings for every tool bridge the agent uses."""
        if not self.spec.tools:
            return None
        headers: dict[str, str] = {}
        if self.tool_credentials is not None:
            headers = bearer_header(await self.tool_credentials.get_token())
        return [ToolResourceBinding(label=tool.label, headers=headers) for tool in self.spec.tools]

    async def ask(self, text: str) -> str:
        agent, thread_id = await self.ensure_ready()
        async with self._turn_lock:
            await self.executor.append_message(thread_id, "user", text)
            run = await self.executor.submit_run(thread_id, agent.id, await self.tool_resources())
            await self.poller.wait(run)
            return await extract_latest_reply(self.client, thread_id)

    async def delete_thread(self) -> None:
        thread_id = self.thread_id
        if thread_id is None:
            return
        logger.info("[SESSION] Deleting thread: %s", thread_id)
        await _delete(self.client.delete_thread, thread_id)
        self.thread_id = None

    async def delete_agent(self) -> None:
        agent = self.agent
        if agent is None:
            return
        logger.info("[SESSION] Deleting agent: %s", agent.id)
        await _delete(self.client.delete_agent, agent.id)
        self.agent = None

    async def close(self) -> None:
        """Delete the thread, then the agent. Raises the collected failures at the end.

        An id is forgotten only once its deletion succeeded (or the entity was
        already gone), so a failed step is retried by the next ``close``.
        """
        errors = await _attempt_all([self.delete_thread, self.delete_agent])
        if errors:
            raise TeardownFailed(errors)


async def _delete(delete: Callable[[str], Awaitable[None]], entity_id: str) -> None:
    try:
        await delete(entity_id)
    except AgentServiceError as exc:
        if not exc.not_found:
            raise
        logger.info("[SESSION] %s was already deleted", entity_id)


async def _attempt_all(steps: list[Callable[[], Awaitable[None]]]) -> list[Exception]:
    errors: list[Exception] = []
    for step in steps:
        try:
            await step()
        except (httpx.HTTPError, AgentServiceError) as exc:
            logger.warning("[SESSION] Cleanup step failed: %s", exc)
            errors.append(exc)
    return errors


class AgentOrchestrator:
    """Owns the agent service client and the plain and tool-augmented sessions."""

    def __init__(
        self,
        settings: Settings,
        *,
        client: AgentsClient | None = None,
        tool_credentials: CredentialProvider | None = None,
        approval_policy: ApprovalPolicy = approve_all,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.approval_policy = approval_policy
        self._client = client
        self._tool_credentials = tool_credentials
        self._sleep = sleep
        self._plain: AgentSession | None = None
        self._tools: AgentSession | None = None

    @property
    def client(self) -> AgentsClient:
        if self._client is None:
            self.settings.require("project_endpoint")
            self._client = AgentsClient(
                self.settings.project_endpoint or "",
                build_agent_credentials(self.settings),
                api_version=self.settings.agents_api_version,
            )
        return self._client

    def _poller(self, tool_credentials: CredentialProvider | None = None) -> RunPoller:
        return RunPoller(
            self.client,
            tool_credentials=tool_credentials,
            approval_policy=self.approval_policy,
            poll_interval=self.settings.run_poll_interval,
            max_wait=self.settings.run_max_wait,
            max_poll_retries=self.settings.run_max_poll_retries,
            sleep=self._sleep,
        )

    def plain_session(self) -> AgentSession:
        if self._plain is None:
            self.settings.require("project_endpoint", "model_deployment_name")
            spec = AgentSpec(
                name=PLAIN_AGENT_NAME,
                instructions=PLAIN_AGENT_INSTRUCTIONS,
                model=self.settings.model_deployment_name or "",
            )
            self._plain = AgentSession(self.client, spec, self._poller())
        return self._plain

    def tool_session(self) -> AgentSession:
        if self._tools is None:
            self.settings.require("project_endpoint", "model_deployment_name", "mcp_server_url")
            credentials = self._tool_credentials or build_tool_credentials(self.settings)
            bridge = ToolDefinition(
                label=self.settings.mcp_server_label,
                endpoint=self.settings.mcp_server_url or "",
                allowed_tools=self.settings.allowed_tool_names,
            )
            logger.info("[SESSION] Defining MCP tool '%s' pointing to '%s'", bridge.label, bridge.endpoint)
            spec = AgentSpec(
                name=TOOL_AGENT_NAME,
                instructions=TOOL_AGENT_INSTRUCTIONS,
                model=self.settings.model_deployment_name or "",
                tools=(bridge,),
            )
            self._tools = AgentSession(
                self.client,
                spec,
                self._poller(credentials),
                tool_credentials=credentials,
            )
        return self._tools

    async def ask_plain(self, text: str) -> str:
        return await self.plain_session().ask(text)

    async def ask_with_tools(self, text: str) -> str:
        return await self.tool_session().ask(text)

    async def close(self) -> None:
        """Delete threads, then agents, across both sessions. Never raises."""
        sessions = [s for s in (self._plain, self._tools) if s is not None]
        steps: list[Callable[[], Awaitable[None]]] = [s.delete_thread for s in sessions]
        steps += [s.delete_agent for s in sessions]
        errors = await _attempt_all(steps)
        if errors:
            logger.error("[SESSION] Cleanup finished with %d failure(s); first: %s", len(errors), errors[0])
        else:
            logger.info("[SESSION] Cleanup complete.")
        if self._client is not None:
            await self._client.aclose()
