"""
Tool Server Manager — connects to MCP tool servers and tracks live handles.

`connect_to_server` is the single-server primitive: open the transport,
perform the MCP handshake, list tools, filter them to the allow-list. It
never raises; any failure comes back as None plus a warning.

The manager connects a whole list of descriptors, each independently,
and closes everything it opened.

Usage:
    async with ToolServerManager() as manager:
        handles = await manager.connect_all(descriptors)
        answer = await multi_mcp_inference(request, handles)
    # transports closed here
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable

from mcp import ClientSession

from mcp_inference.factories import GITHUB
from mcp_inference.models import ServerDescriptor, ToolSpec, get_field
from mcp_inference.transport import transport_for

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT_SECONDS = 60


@dataclass
class LiveServerHandle:
    """A connected server and the tools it is willing to expose."""
    descriptor: ServerDescriptor
    session: Any  # mcp.ClientSession, or anything with call_tool()
    tools: list[ToolSpec]
    connected: bool = True
    _stack: AsyncExitStack | None = field(default=None, repr=False)

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def name(self) -> str:
        return self.descriptor.name

    def tool_names(self) -> list[str]:
        return [t.name for t in self.tools]

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        return await self.session.call_tool(tool_name, arguments=arguments)

    async def close(self) -> None:
        """Close the session and its transport."""
        stack, self._stack = self._stack, None
        self.connected = False
        if stack is not None:
            await stack.aclose()


def map_tools(remote_tools: Iterable[Any]) -> list[ToolSpec]:
    """Map an MCP tool listing into function-calling ToolSpecs."""
    return [
        ToolSpec(
            name=get_field(tool, "name"),
            description=get_field(tool, "description"),
            parameters=get_field(tool, "inputSchema"),
        )
        for tool in remote_tools
    ]


def filter_tools(tools: list[ToolSpec], allowed: Iterable[str]) -> list[ToolSpec]:
    """Keep only tools whose name is on the allow-list, preserving order."""
    allowed = set(allowed)
    return [t for t in tools if t.name in allowed]


async def connect_to_server(
    descriptor: ServerDescriptor,
    allowed_tools: Iterable[str] | None = None,
) -> LiveServerHandle | None:
    """
    Connect to one MCP server and discover its tools.

    Args:
        descriptor: How to reach the server.
        allowed_tools: Allow-list overriding descriptor.tool_allow_list.
                       None on both means no filtering.

    Returns:
        A connected handle, or None if anything went wrong.
    """
    logger.info(f"Connecting to {descriptor.name} server...")
    stack = AsyncExitStack()

    try:
        transport = transport_for(descriptor)
        read_stream, write_stream = await transport.open(stack)

        session = await stack.enter_async_context(
            ClientSession(
                read_stream,
                write_stream,
                read_timeout_seconds=timedelta(seconds=DEFAULT_TOOL_TIMEOUT_SECONDS),
            )
        )
        await session.initialize()
        logger.info(f"Successfully connected to {descriptor.name} server")

        listing = await session.list_tools()
        remote_tools = get_field(listing, "tools") or []
        logger.info(f"Retrieved {len(remote_tools)} tools from {descriptor.name} server")

        tools = map_tools(remote_tools)

        allowed = allowed_tools if allowed_tools is not None else descriptor.tool_allow_list
        if allowed is not None:
            tools = filter_tools(tools, allowed)
            logger.info(
                f"Connected to {descriptor.name} with {len(tools)} filtered tools: "
                f"{', '.join(t.name for t in tools)}"
            )
        else:
            logger.info(f"Mapped {len(tools)} tools from {descriptor.name}")

        return LiveServerHandle(
            descriptor=descriptor,
            session=session,
            tools=tools,
            connected=True,
            _stack=stack,
        )
    except Exception as e:
        logger.warning(f"Failed to connect to {descriptor.name} server: {e}")
        await _discard(stack, descriptor.name)
        return None


async def connect_to_github(token: str) -> LiveServerHandle | None:
    """Connect to the hosted GitHub MCP server (read-only tools)."""
    return await connect_to_server(GITHUB.build({"token": token}))


async def _discard(stack: AsyncExitStack, server_name: str) -> None:
    try:
        await stack.aclose()
    except Exception as e:
        logger.debug(f"Error while discarding transport for {server_name}: {e}")


class ToolServerManager:
    """
    Owns the live handles of one run.

    Responsibilities:
    - Connect each configured server independently (failures are skipped)
    - Keep handles in connection order
    - Close everything, most recent first
    """

    def __init__(self):
        self._handles: dict[str, LiveServerHandle] = {}

    async def connect(
        self,
        descriptor: ServerDescriptor,
        allowed_tools: Iterable[str] | None = None,
    ) -> LiveServerHandle | None:
        existing = self._handles.get(descriptor.id)
        if existing is not None:
            logger.warning(f"Server {descriptor.id} already connected, reusing handle")
            return existing

        handle = await connect_to_server(descriptor, allowed_tools)
        if handle is None:
            logger.warning(f"Failed to connect to {descriptor.name}")
            return None

        self._handles[descriptor.id] = handle
        return handle

    async def connect_all(self, descriptors: Iterable[ServerDescriptor]) -> list[LiveServerHandle]:
        """Connect every descriptor in order. Returns each connected handle once."""
        connected = []
        seen: set[str] = set()
        for descriptor in descriptors:
            handle = await self.connect(descriptor)
            if handle is not None and handle.id not in seen:
                seen.add(handle.id)
                connected.append(handle)
        return connected

    def handles(self) -> list[LiveServerHandle]:
        return list(self._handles.values())

    def list_servers(self) -> dict[str, bool]:
        """All known servers and whether they are still connected."""
        return {sid: h.connected for sid, h in self._handles.items()}

    async def close_all(self) -> None:
        """Close every handle in reverse connection order."""
        for server_id in reversed(list(self._handles)):
            handle = self._handles.pop(server_id)
            try:
                await handle.close()
                logger.info(f"Closed {server_id}")
            except Exception as e:
                logger.error(f"Error closing {server_id}: {e}")

    async def __aenter__(self) -> "ToolServerManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_all()
