"""Shared test helpers: an in-memory agent service and run builders."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Iterable

from agent_relay.foundry.types import (
    AgentDefinition,
    Message,
    RequiredAction,
    Run,
    RunError,
    TextItem,
    ToolApprovalDecision,
    ToolCall,
    ToolDefinition,
    ToolResourceBinding,
)


def make_run(
    status: str,
    *,
    run_id: str = "run-1",
    thread_id: str = "thread-1",
    agent_id: str = "asst-1",
    tool_calls: Iterable[ToolCall] | None = None,
    last_error: str | None = None,
) -> Run:
    action = None
    if tool_calls is not None:
        action = RequiredAction(type="submit_tool_approval", tool_calls=tuple(tool_calls))
    return Run(
        id=run_id,
        thread_id=thread_id,
        agent_id=agent_id,
        status=status,
        required_action=action,
        last_error=RunError(code="server_error", message=last_error) if last_error else None,
    )


def mcp_call(call_id: str, name: str = "list_csv_files", arguments: str = "{}") -> ToolCall:
    return ToolCall(id=call_id, type="mcp", name=name, arguments=arguments, server_label="EnphaseMcp")


def text_message(*parts: str, message_id: str = "msg-1", role: str = "assistant") -> Message:
    return Message(id=message_id, role=role, content=tuple(TextItem(p) for p in parts))


class CountingCredentials:
    """Hands out token-1, token-2, ... so tests can tell fetches apart."""

    def __init__(self, prefix: str = "token") -> None:
        self.prefix = prefix
        self.calls = 0

    async def get_token(self) -> str:
        self.calls += 1
        return f"{self.prefix}-{self.calls}"


class FakeAgentsClient:
    """Scripted stand-in for AgentsClient.

    ``poll_sequence`` items are returned by successive ``get_run`` calls; an
    exception item is raised instead.
    """

    def __init__(
        self,
        poll_sequence: Iterable[Run | Exception] = (),
        messages: Iterable[Message] = (),
    ) -> None:
        self.polls: deque[Run | Exception] = deque(poll_sequence)
        self.messages: list[Message] = list(messages)
        self.created_agents: list[AgentDefinition] = []
        self.created_threads: list[str] = []
        self.deleted_agents: list[str] = []
        self.deleted_threads: list[str] = []
        self.appended: list[tuple[str, str, str]] = []
        self.created_runs: list[dict[str, Any]] = []
        self.approvals: list[list[ToolApprovalDecision]] = []
        self.cancelled: list[str] = []
        self.get_run_calls = 0
        self.list_calls = 0
        self.closed = False
        self.create_agent_error: Exception | None = None
        self.create_run_error: Exception | None = None
        self.delete_errors: dict[str, Exception] = {}
        self.initial_status = "queued"
        self.cancel_settles = True
        self.cancel_error: Exception | None = None
        self.deletions: list[str] = []

    async def create_agent(
        self,
        *,
        model: str,
        name: str,
        instructions: str,
        tools: Iterable[ToolDefinition] = (),
    ) -> AgentDefinition:
        # Yield so concurrent callers interleave here
        await asyncio.sleep(0)
        if self.create_agent_error is not None:
            error, self.create_agent_error = self.create_agent_error, None
            raise error
        agent = AgentDefinition(
            id=f"asst-{len(self.created_agents) + 1}",
            name=name,
            instructions=instructions,
            model=model,
            tools=tuple(tools),
        )
        self.created_agents.append(agent)
        return agent

    async def delete_agent(self, agent_id: str) -> None:
        self.deletions.append(agent_id)
        if agent_id in self.delete_errors:
            raise self.delete_errors[agent_id]
        self.deleted_agents.append(agent_id)

    async def create_thread(self) -> str:
        await asyncio.sleep(0)
        thread_id = f"thread-{len(self.created_threads) + 1}"
        self.created_threads.append(thread_id)
        return thread_id

    async def delete_thread(self, thread_id: str) -> None:
        self.deletions.append(thread_id)
        if thread_id in self.delete_errors:
            raise self.delete_errors[thread_id]
        self.deleted_threads.append(thread_id)

    async def append_message(self, thread_id: str, role: str, text: str) -> Message:
        self.appended.append((thread_id, role, text))
        return Message(id=f"msg-user-{len(self.appended)}", role=role, content=(TextItem(text),))

    async def list_messages(self, thread_id: str, *, order: str = "desc", limit: int = 20) -> list[Message]:
        self.list_calls += 1
        return self.messages[:limit]

    async def create_run(
        self,
        thread_id: str,
        agent_id: str,
        tool_resources: list[ToolResourceBinding] | None = None,
    ) -> Run:
        if self.create_run_error is not None:
            raise self.create_run_error
        self.created_runs.append(
            {"thread_id": thread_id, "agent_id": agent_id, "tool_resources": tool_resources}
        )
        return make_run(self.initial_status, thread_id=thread_id, agent_id=agent_id)

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        self.get_run_calls += 1
        if not self.polls:
            raise AssertionError("poll sequence exhausted")
        item = self.polls.popleft()
        if isinstance(item, Exception):
            raise item
        return item

    async def submit_tool_approvals(
        self, thread_id: str, run_id: str, decisions: list[ToolApprovalDecision]
    ) -> Run:
        self.approvals.append(list(decisions))
        return make_run("in_progress", run_id=run_id, thread_id=thread_id)

    async def cancel_run(self, thread_id: str, run_id: str) -> Run:
        self.cancelled.append(run_id)
        if self.cancel_error is not None:
            raise self.cancel_error
        if self.cancel_settles:
            # Later polls see the run as cancelled, like the real service
            self.polls.clear()
            self.polls.append(make_run("cancelled", run_id=run_id, thread_id=thread_id))
        return make_run("cancelling", run_id=run_id, thread_id=thread_id)

    async def aclose(self) -> None:
        self.closed = True
