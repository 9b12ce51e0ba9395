"""Hosted agent service: client, run lifecycle and sessions."""

from .client import AgentsClient
from .extract import extract_latest_reply, join_text
from .runs import ApprovalPolicy, RunExecutor, RunPoller, allow_only, approve_all
from .session import AgentOrchestrator, AgentSession, AgentSpec

__all__ = [
    "AgentOrchestrator",
    "AgentSession",
    "AgentSpec",
    "AgentsClient",
    "ApprovalPolicy",
    "RunExecutor",
    "RunPoller",
    "allow_only",
    "approve_all",
    "extract_latest_reply",
    "join_text",
]
