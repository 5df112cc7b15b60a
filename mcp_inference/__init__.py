"""
MCP Inference — chat completion with tools from several MCP servers.

Architecture:
    ┌──────────────┐  credentials   ┌──────────────┐  descriptors  ┌──────────────┐
    │   Registry   │ ─────────────▶ │  Availability │ ────────────▶ │   Manager    │
    │ (factories)  │                │    Report     │               │ (connect all)│
    └──────────────┘                └──────────────┘               └──────┬───────┘
                                                                          │ live handles
    ┌──────────────┐   tool calls   ┌──────────────┐   completions  ┌─────▼────────┐
    │ MCP servers  │ ◀──────────── │    Bridge     │ ◀──────────── │  Inference   │
    │ (stdio/http) │ ────────────▶ │  (routing)    │ ────────────▶ │    loop      │
    └──────────────┘    results     └──────────────┘  tool results  └──────────────┘

Each server family has a ServerFactory that validates credentials and
builds a ServerDescriptor. The ServerRegistry reports which families are
usable, the ToolServerManager connects to them through the `mcp` SDK,
and multi_mcp_inference drives the bounded tool-calling loop against an
OpenAI-compatible chat-completion endpoint.
"""

from mcp_inference.bridge import DuplicateToolError, execute_tool_call, execute_tool_calls
from mcp_inference.completion import MalformedResponseError, chat_completion
from mcp_inference.config import credentials_from_env, load_mcp_config, substitute_env_vars
from mcp_inference.factories import MissingCredentialError, ServerFactory, builtin_factories
from mcp_inference.inference import (
    MAX_ITERATIONS,
    mcp_inference,
    multi_mcp_inference,
    simple_inference,
)
from mcp_inference.manager import (
    LiveServerHandle,
    ToolServerManager,
    connect_to_github,
    connect_to_server,
)
from mcp_inference.models import (
    AvailabilityReport,
    InferenceRequest,
    ServerDescriptor,
    ServerStatus,
    ToolCallRequest,
    ToolCallResult,
    ToolSpec,
    TransportKind,
)
from mcp_inference.registry import (
    ServerRegistry,
    create_server_configs,
    create_server_configs_from_credentials,
    default_registry,
)
from mcp_inference.runner import RunResult, run

__all__ = [
    "AvailabilityReport",
    "DuplicateToolError",
    "InferenceRequest",
    "LiveServerHandle",
    "MAX_ITERATIONS",
    "MalformedResponseError",
    "MissingCredentialError",
    "RunResult",
    "ServerDescriptor",
    "ServerFactory",
    "ServerRegistry",
    "ServerStatus",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolServerManager",
    "ToolSpec",
    "TransportKind",
    "builtin_factories",
    "chat_completion",
    "connect_to_github",
    "connect_to_server",
    "create_server_configs",
    "create_server_configs_from_credentials",
    "credentials_from_env",
    "default_registry",
    "execute_tool_call",
    "execute_tool_calls",
    "load_mcp_config",
    "mcp_inference",
    "multi_mcp_inference",
    "run",
    "simple_inference",
    "substitute_env_vars",
]
