"""
Bridge between live MCP servers and chat-completion function calling.

Aggregates the tools of every connected server into one tool list,
routes model-issued tool calls to the server that owns the function,
and flattens MCP call results into the text a tool message carries.

Usage:
    routing = build_routing_table(handles)
    tools = [t.spec.to_openai() for t in aggregate_tools(handles)]

    results = await execute_tool_calls(routing, tool_calls)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable

from mcp_inference.manager import LiveServerHandle
from mcp_inference.models import ToolCallRequest, ToolCallResult, ToolSpec, get_field

logger = logging.getLogger(__name__)


class DuplicateToolError(ValueError):
    """Two connected servers expose a tool with the same name."""

    def __init__(self, tool_name: str, first: str, second: str):
        self.tool_name = tool_name
        super().__init__(
            f"Tool {tool_name} is exposed by both {first} and {second}"
        )


@dataclass(frozen=True)
class AggregatedTool:
    """A tool tagged with the server that owns it."""
    spec: ToolSpec
    server_id: str
    server_name: str


def aggregate_tools(handles: Iterable[LiveServerHandle]) -> list[AggregatedTool]:
    return [
        AggregatedTool(spec=tool, server_id=handle.id, server_name=handle.name)
        for handle in handles
        for tool in handle.tools
    ]


def build_routing_table(
    handles: Iterable[LiveServerHandle],
    reject_duplicates: bool = False,
) -> dict[str, LiveServerHandle]:
    """
    Map function name → owning handle.

    On a name clash the last handle wins, unless `reject_duplicates`
    is set, in which case DuplicateToolError is raised.
    """
    routing: dict[str, LiveServerHandle] = {}
    for handle in handles:
        for tool in handle.tools:
            previous = routing.get(tool.name)
            if previous is not None and previous is not handle:
                if reject_duplicates:
                    raise DuplicateToolError(tool.name, previous.name, handle.name)
                logger.warning(
                    f"Tool {tool.name} already registered by {previous.name}, "
                    f"overwriting with {handle.name}"
                )
            routing[tool.name] = handle
    return routing


def _jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return str(value)


def flatten_tool_content(content: Any) -> str:
    """
    Turn MCP call content into plain text.

    A list of content blocks yields its text blocks joined by newlines;
    a string passes through; anything else is serialized to JSON.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        texts = [
            get_field(item, "text")
            for item in content
            if get_field(item, "type") == "text" and get_field(item, "text")
        ]
        return "\n".join(texts)
    return json.dumps(content, default=_jsonable)


async def execute_tool_call(
    routing: dict[str, LiveServerHandle],
    call: ToolCallRequest,
) -> ToolCallResult:
    """Run one tool call on its owning server. Never raises."""
    target = routing.get(call.name)

    if target is None:
        logger.warning(f"Tool {call.name} not found in any connected server")
        return ToolCallResult(
            tool_call_id=call.id,
            name=call.name,
            content=f"Error: Tool {call.name} not available on any connected server",
        )

    logger.info(f"Routing tool {call.name} to server {target.name}")
    logger.debug(f"Arguments: {call.arguments}")

    try:
        arguments = json.loads(call.arguments) if call.arguments else {}
        result = await target.call_tool(call.name, arguments)
        content = result if isinstance(result, str) else get_field(result, "content")
        text = flatten_tool_content(content)
    except Exception as e:
        logger.warning(f"Failed to execute tool {call.name} on {target.name}: {e}")
        return ToolCallResult(tool_call_id=call.id, name=call.name, content=f"Error: {e}")

    logger.info(f"Tool {call.name} executed successfully on {target.name}")
    return ToolCallResult(tool_call_id=call.id, name=call.name, content=text)


async def execute_tool_calls(
    routing: dict[str, LiveServerHandle],
    calls: Iterable[ToolCallRequest],
) -> list[ToolCallResult]:
    """Run tool calls one after another; results keep the request order."""
    results = []
    for call in calls:
        results.append(await execute_tool_call(routing, call))
    return results
