"""Pytest configuration and fixtures."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from mcp.types import CallToolResult, TextContent

from mcp_inference.manager import LiveServerHandle
from mcp_inference.models import InferenceRequest, ServerDescriptor, ToolSpec, TransportKind


def completion(content=None, tool_calls=None):
    """A chat-completion payload in dict form."""
    message = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {"choices": [{"index": 0, "message": message}]}


def tool_call(call_id, name, arguments="{}"):
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


@pytest.fixture
def make_request():
    def _make(response_format=None, messages=None):
        return InferenceRequest(
            messages=messages or [
                {"role": "system", "content": "You are a helpful assistant"},
                {"role": "user", "content": "What changed?"},
            ],
            model_name="openai/gpt-4o",
            max_tokens=200,
            endpoint="https://models.example.test/inference",
            token="test-token",
            response_format=response_format,
        )
    return _make


@pytest.fixture
def make_client():
    """Chat client whose create() returns the given responses in order."""
    def _make(responses):
        create = AsyncMock(side_effect=responses)
        return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return _make


@pytest.fixture
def make_handle():
    """A connected handle whose session answers every call with `reply`."""
    def _make(server_id, tool_names, reply="ok"):
        descriptor = ServerDescriptor(
            id=server_id,
            name=f"{server_id} server",
            transport=TransportKind.HTTP,
            url=f"https://{server_id}.example.test/mcp",
        )
        session = AsyncMock()
        session.call_tool.return_value = CallToolResult(
            content=[TextContent(type="text", text=reply)]
        )
        tools = [
            ToolSpec(name=name, description=f"{name} tool", parameters={"type": "object", "properties": {}})
            for name in tool_names
        ]
        return LiveServerHandle(descriptor=descriptor, session=session, tools=tools)
    return _make
