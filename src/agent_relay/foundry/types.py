"""Wire types for the hosted agent service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


ACTIVE_STATUSES = frozenset(
    {RunStatus.QUEUED.value, RunStatus.IN_PROGRESS.value, RunStatus.REQUIRES_ACTION.value}
)

SUBMIT_TOOL_APPROVAL = "submit_tool_approval"
MCP_TOOL_CALL = "mcp"


@dataclass(frozen=True, slots=True)
class TextItem:
    text: str


@dataclass(frozen=True, slots=True)
class ImageReferenceItem:
    file_id: str


ContentItem = Union[TextItem, ImageReferenceItem]


def _parse_content_item(raw: Dict[str, Any]) -> ContentItem | None:
    kind = raw.get("type")
    if kind == "text":
        text = raw.get("text") or {}
        value = text.get("value", "") if isinstance(text, dict) else str(text)
        return TextItem(text=value)
    if kind == "image_file":
        return ImageReferenceItem(file_id=(raw.get("image_file") or {}).get("file_id", ""))
    logger.debug("[TYPES] Dropping content item of unknown type %r", kind)
    return None


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    role: str
    content: tuple[ContentItem, ...] = ()
    created_at: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        items = (_parse_content_item(raw) for raw in data.get("content") or [])
        return cls(
            id=data["id"],
            role=data.get("role", "assistant"),
            content=tuple(item for item in items if item is not None),
            created_at=data.get("created_at") or 0,
        )


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A bridge to an external tool-hosting service."""

    label: str
    endpoint: str
    allowed_tools: frozenset[str] = frozenset()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": "mcp",
            "server_label": self.label,
            "server_url": self.endpoint,
        }
        if self.allowed_tools:
            payload["allowed_tools"] = sorted(self.allowed_tools)
        return payload


@dataclass(frozen=True, slots=True)
class ToolResourceBinding:
    """Per-run request headers for one tool bridge."""

    label: str
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"server_label": self.label, "headers": dict(self.headers)}


def tool_resources_payload(bindings: list[ToolResourceBinding]) -> Dict[str, Any]:
    return {"mcp": [binding.to_dict() for binding in bindings]}


@dataclass(frozen=True, slots=True)
class AgentDefinition:
    id: str
    name: str
    instructions: str = ""
    model: str = ""
    tools: tuple[ToolDefinition, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentDefinition":
        tools = []
        for raw in data.get("tools") or []:
            if raw.get("type") != "mcp":
                continue
            tools.append(
                ToolDefinition(
                    label=raw.get("server_label", ""),
                    endpoint=raw.get("server_url", ""),
                    allowed_tools=frozenset(raw.get("allowed_tools") or ()),
                )
            )
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            instructions=data.get("instructions") or "",
            model=data.get("model") or "",
            tools=tuple(tools),
        )


@dataclass(frozen=True, slots=True)
class ToolCall:
    id: str
    type: str
    name: str = ""
    arguments: str = ""
    server_label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        return cls(
            id=data["id"],
            type=data.get("type", ""),
            name=data.get("name", ""),
            arguments=data.get("arguments", "") or "",
            server_label=data.get("server_label"),
        )


@dataclass(frozen=True, slots=True)
class RequiredAction:
    type: str
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequiredAction":
        kind = data.get("type", "")
        body = data.get(kind) or {}
        return cls(
            type=kind,
            tool_calls=tuple(ToolCall.from_dict(raw) for raw in body.get("tool_calls") or []),
        )


@dataclass(frozen=True, slots=True)
class ToolApprovalDecision:
    tool_call_id: str
    approved: bool
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"tool_call_id": self.tool_call_id, "approve": self.approved}
        if self.headers:
            payload["headers"] = dict(self.headers)
        return payload


@dataclass(frozen=True, slots=True)
class RunError:
    code: str = ""
    message: str = ""


@dataclass(frozen=True, slots=True)
class Run:
    id: str
    thread_id: str
    agent_id: str
    status: str
    required_action: Optional[RequiredAction] = None
    last_error: Optional[RunError] = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in ACTIVE_STATUSES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Run":
        action = data.get("required_action")
        error = data.get("last_error")
        return cls(
            id=data["id"],
            thread_id=data.get("thread_id", ""),
            agent_id=data.get("assistant_id", ""),
            status=data.get("status", ""),
            required_action=RequiredAction.from_dict(action) if action else None,
            last_error=RunError(code=error.get("code") or "", message=error.get("message") or "")
            if error
            else None,
        )
