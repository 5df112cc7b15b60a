"""
Value types shared across the inference package.

Server descriptors and availability reports describe *which* tool servers
can be reached; tool specs, tool calls and tool results describe the
traffic between the chat-completion API and those servers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, TypedDict

DEFAULT_PRIORITY = 999

# server field name → secret value, scoped to one server id
CredentialBag = Mapping[str, str]


class TransportKind(str, Enum):
    HTTP = "http"
    STDIO = "stdio"


class ServerStatus(str, Enum):
    CREDENTIALS_MISSING = "credentials-missing"
    INVALID_CREDENTIALS = "invalid-credentials"
    CONNECTION_FAILED = "connection-failed"


@dataclass(frozen=True)
class ServerDescriptor:
    """
    How to reach one tool server.

    http servers need `url` (plus optional headers); stdio servers need
    `command` (plus optional args and env). `tool_allow_list` of None
    means every tool the server advertises is exposed.
    """
    id: str
    name: str
    transport: TransportKind
    url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    readonly: bool = False
    priority: int = DEFAULT_PRIORITY
    tool_allow_list: frozenset[str] | None = None

    def __post_init__(self):
        kind = TransportKind(self.transport)
        object.__setattr__(self, "transport", kind)
        if kind is TransportKind.HTTP and not self.url:
            raise ValueError(f"HTTP server {self.name} requires URL")
        if kind is TransportKind.STDIO and not self.command:
            raise ValueError(f"Stdio server {self.name} requires command")
        if self.tool_allow_list is not None:
            object.__setattr__(self, "tool_allow_list", frozenset(self.tool_allow_list))


@dataclass(frozen=True)
class UnavailableServer:
    server_id: str
    reason: str
    status: ServerStatus
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class AvailabilitySummary:
    total: int
    available: int
    unavailable: int


@dataclass(frozen=True)
class AvailabilityReport:
    """Partition of registered server families into reachable / not."""
    available: tuple[ServerDescriptor, ...]
    unavailable: tuple[UnavailableServer, ...]
    summary: AvailabilitySummary


@dataclass(frozen=True)
class ToolSpec:
    """A tool in the chat-completion API's function-calling shape."""
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None

    def to_openai(self) -> dict[str, Any]:
        function: dict[str, Any] = {"name": self.name}
        if self.description is not None:
            function["description"] = self.description
        if self.parameters is not None:
            function["parameters"] = self.parameters
        return {"type": "function", "function": function}


def get_field(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


@dataclass(frozen=True)
class ToolCallRequest:
    """A function call proposed by the model."""
    id: str
    name: str
    arguments: str
    type: str = "function"

    @classmethod
    def from_raw(cls, raw: Any) -> "ToolCallRequest":
        """Build from an SDK tool-call object or its dict form."""
        function = get_field(raw, "function")
        arguments = get_field(function, "arguments")
        if arguments is not None and not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=get_field(raw, "id") or "",
            name=get_field(function, "name") or "",
            arguments=arguments or "",
            type=get_field(raw, "type") or "function",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ToolCallResult:
    tool_call_id: str
    name: str
    content: str

    @property
    def is_error(self) -> bool:
        return self.content.startswith("Error")

    def to_message(self) -> "ConversationMessage":
        return {
            "role": "tool",
            "tool_call_id": self.tool_call_id,
            "name": self.name,
            "content": self.content,
        }


class ConversationMessage(TypedDict, total=False):
    role: str  # system | user | assistant | tool
    content: str | None
    tool_calls: list[dict[str, Any]]
    tool_call_id: str
    name: str


@dataclass(frozen=True)
class InferenceRequest:
    """
    A prepared chat request. Read-only input to the inference functions.

    `response_format` is the structured-output directive passed straight
    to the API, e.g. {"type": "json_schema", "json_schema": {...}}.
    """
    messages: tuple[ConversationMessage, ...]
    model_name: str
    max_tokens: int
    endpoint: str
    token: str
    response_format: dict[str, Any] | None = None

    def __post_init__(self):
        object.__setattr__(self, "messages", tuple(self.messages))
