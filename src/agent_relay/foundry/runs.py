"""Run submission and the poll / tool-approval loop."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import httpx

from ..credentials import CredentialProvider, bearer_header
from ..errors import (
    AgentRelayError,
    AgentServiceError,
    PollingTransportError,
    RunCancelled,
    RunExpired,
    RunFailed,
    RunTerminated,
    RunTimeout,
    SubmissionFailed,
)
from .client import AgentsClient
from .types import (
    MCP_TOOL_CALL,
    SUBMIT_TOOL_APPROVAL,
    Message,
    Run,
    RunStatus,
    ToolApprovalDecision,
    ToolCall,
    ToolResourceBinding,
)

logger = logging.getLogger(__name__)

# (tool_name, arguments) -> approve?
ApprovalPolicy = Callable[[str, str], bool]

_TERMINAL_ERRORS: dict[str, type[RunTerminated]] = {
    RunStatus.FAILED.value: RunFailed,
    RunStatus.CANCELLED.value: RunCancelled,
    "cancelling": RunCancelled,
    RunStatus.EXPIRED.value: RunExpired,
}


def approve_all(tool_name: str, arguments: str) -> bool:
    return True


def allow_only(*tool_names: str) -> ApprovalPolicy:
    """Policy approving only the named tools; anything else is rejected."""
    allowed = frozenset(tool_names)

    def _policy(tool_name: str, arguments: str) -> bool:
        return tool_name in allowed

    return _policy


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, AgentServiceError):
        return exc.status_code >= 500 or exc.status_code == 429
    return isinstance(exc, httpx.HTTPError)


def _is_settled(run: Run) -> bool:
    return run.is_terminal and run.status != "cancelling"


class RunExecutor:
    """Appends user turns and launches runs. Failures are not retried here."""

    def __init__(self, client: AgentsClient) -> None:
        self.client = client

    async def append_message(self, thread_id: str, role: str, text: str) -> Message:
        try:
            return await self.client.append_message(thread_id, role, text)
        except (httpx.HTTPError, AgentServiceError) as exc:
            raise SubmissionFailed(f"Could not add message to thread {thread_id}: {exc}", exc) from exc

    async def submit_run(
        self,
        thread_id: str,
        agent_id: str,
        tool_resources: list[ToolResourceBinding] | None = None,
    ) -> Run:
        try:
            run = await self.client.create_run(thread_id, agent_id, tool_resources)
        except (httpx.HTTPError, AgentServiceError) as exc:
            raise SubmissionFailed(f"Could not start run on thread {thread_id}: {exc}", exc) from exc
        logger.info("[RUNS] Run started with ID: %s (status %s). Polling for status...", run.id, run.status)
        return run


class RunPoller:
    """Drives a run to a terminal status, answering tool approval requests on the way.

    Each iteration suspends for ``poll_interval`` seconds and then fetches the run.
    While the run is in ``requires_action`` with a ``submit_tool_approval`` action,
    every ``mcp`` tool call in the batch gets a decision from ``approval_policy``;
    approved decisions carry a fresh bearer token from ``tool_credentials``. The
    whole batch goes out in a single submission. Tool calls of any other kind are
    skipped and the loop keeps polling.

    The loop gives up after ``max_wait`` seconds (or ``max_polls`` fetches) and
    raises :class:`RunTimeout` once the run has been cancelled.
    """

    def __init__(
        self,
        client: AgentsClient,
        *,
        tool_credentials: Optional[CredentialProvider] = None,
        approval_policy: ApprovalPolicy = approve_all,
        poll_interval: float = 1.0,
        max_wait: float = 300.0,
        max_polls: Optional[int] = None,
        max_poll_retries: int = 3,
        settle_polls: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.tool_credentials = tool_credentials
        self.approval_policy = approval_policy
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.max_polls = max_polls
        self.max_poll_retries = max_poll_retries
        self.settle_polls = settle_polls
        self._sleep = sleep
        self._clock = clock

    async def wait(self, run: Run) -> Run:
        """Poll ``run`` until it completes. Raises for any other terminal status.

        If polling is abandoned (timeout, transport failure, rejected approval) the
        run is cancelled and given ``settle_polls`` fetches to reach a final status
        before the error propagates, so the thread is free for the next run.
        """
        try:
            run = await self._poll_until_terminal(run)
        except AgentRelayError:
            await self._abandon(run)
            raise

        if run.status != RunStatus.COMPLETED.value:
            error_cls = _TERMINAL_ERRORS.get(run.status, RunFailed)
            logger.error(
                "[RUNS] Run failed or was cancelled. Last Error: %s",
                run.last_error.message if run.last_error else None,
            )
            raise error_cls(run)
        return run

    async def _poll_until_terminal(self, run: Run) -> Run:
        started = self._clock()
        polls = 0
        answered: set[str] = set()

        while not run.is_terminal:
            waited = self._clock() - started
            if waited >= self.max_wait or (self.max_polls is not None and polls >= self.max_polls):
                raise RunTimeout(run, waited, polls)

            await self._sleep(self.poll_interval)
            run = await self._fetch(run)
            polls += 1
            logger.info("[RUNS]  > Run %s status: %s", run.id, run.status)

            if run.status == RunStatus.REQUIRES_ACTION.value:
                run = await self._handle_required_action(run, answered)

        logger.info("[RUNS] Run %s finished with status: %s after %d polls", run.id, run.status, polls)
        return run

    async def _fetch(self, run: Run) -> Run:
        failures = 0
        while True:
            try:
                return await self.client.get_run(run.thread_id, run.id)
            except (httpx.HTTPError, AgentServiceError) as exc:
                failures += 1
                if not _is_retryable(exc) or failures > self.max_poll_retries:
                    raise PollingTransportError(
                        f"Polling run {run.id} failed after {failures} attempt(s): {exc}", exc
                    ) from exc
                delay = self.poll_interval * 2**failures
                logger.warning(
                    "[RUNS] Poll of run %s failed (%s); retry %d/%d in %.1fs",
                    run.id,
                    exc,
                    failures,
                    self.max_poll_retries,
                    delay,
                )
                await self._sleep(delay)

    async def _handle_required_action(self, run: Run, answered: set[str]) -> Run:
        action = run.required_action
        if action is None or action.type != SUBMIT_TOOL_APPROVAL:
            logger.warning(
                "[RUNS] Run %s requires unsupported action %r; waiting",
                run.id,
                action.type if action else None,
            )
            return run

        pending = [call for call in action.tool_calls if call.id not in answered]
        decisions = await self.build_decisions(pending)
        if not decisions:
            return run

        logger.info("[RUNS] Submitting %d tool approval(s) to run %s", len(decisions), run.id)
        try:
            resumed = await self.client.submit_tool_approvals(run.thread_id, run.id, decisions)
        except (httpx.HTTPError, AgentServiceError) as exc:
            raise SubmissionFailed(f"Tool approval submission for run {run.id} failed: {exc}", exc) from exc
        answered.update(decision.tool_call_id for decision in decisions)
        return resumed

    async def build_decisions(self, tool_calls: list[ToolCall]) -> list[ToolApprovalDecision]:
        """One decision per recognised tool call; unknown kinds are skipped."""
        decisions: list[ToolApprovalDecision] = []
        headers: dict[str, str] | None = None
        for call in tool_calls:
            if call.type != MCP_TOOL_CALL:
                logger.warning(
                    "[RUNS] Skipping unrecognized tool call %s of type %r (%s)",
                    call.id,
                    call.type,
                    call.name,
                )
                continue
            if not self.approval_policy(call.name, call.arguments):
                logger.info("[RUNS] Rejecting tool call -> Name: %s, Arguments: %s", call.name, call.arguments)
                decisions.append(ToolApprovalDecision(tool_call_id=call.id, approved=False))
                continue
            if headers is None:
                headers = await self._approval_headers()
            logger.info("[RUNS] Approving tool call -> Name: %s, Arguments: %s", call.name, call.arguments)
            decisions.append(ToolApprovalDecision(tool_call_id=call.id, approved=True, headers=headers))
        return decisions

    async def _approval_headers(self) -> dict[str, str]:
        if self.tool_credentials is None:
            logger.warning("[RUNS] No tool credentials configured; approving without Authorization header")
            return {}
        return bearer_header(await self.tool_credentials.get_token())

    async def _abandon(self, run: Run) -> None:
        """Best-effort cancel, then a bounded wait for the run to settle. Never raises."""
        try:
            current = await self.client.cancel_run(run.thread_id, run.id)
            logger.warning("[RUNS] Cancel requested for abandoned run %s (status %s)", run.id, current.status)
        except (httpx.HTTPError, AgentServiceError) as exc:
            logger.warning("[RUNS] Could not cancel run %s: %s", run.id, exc)
            return

        for _ in range(self.settle_polls):
            if _is_settled(current):
                return
            await self._sleep(self.poll_interval)
            try:
                current = await self.client.get_run(run.thread_id, run.id)
            except (httpx.HTTPError, AgentServiceError) as exc:
                logger.warning("[RUNS] Could not confirm cancellation of run %s: %s", run.id, exc)
                return
        if not _is_settled(current):
            logger.warning(
                "[RUNS] Run %s still %s after %d settle polls", run.id, current.status, self.settle_polls
            )
