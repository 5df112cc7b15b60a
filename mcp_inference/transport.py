"""
Transport layer abstraction for MCP tool servers.

Implements:
  - StdioTransport: spawn the server as a child process, talk over stdin/stdout
  - HttpTransport: streamable HTTP to a remote server

Both open the `mcp` SDK's client streams inside a caller-owned
AsyncExitStack, so closing the stack tears the transport down.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import Any, Mapping

from mcp import StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from mcp_inference.models import ServerDescriptor, TransportKind

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Abstract transport for MCP communication."""

    @abstractmethod
    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        """Open the transport within `stack`. Returns (read_stream, write_stream)."""
        ...

    @abstractmethod
    def describe(self) -> str:
        ...


class StdioTransport(Transport):
    """
    MCP over stdin/stdout pipes to a subprocess.

    The tool server runs as a child process for as long as the exit
    stack stays open.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: Mapping[str, str | None] | None = None,
    ):
        """
        Args:
            command: Executable that launches the tool server (e.g. "npx").
            args: Arguments for the executable.
            env: Extra environment variables. Entries whose value is None
                 are dropped before spawning.
        """
        self.command = command
        self.args = list(args or [])
        self.env = filter_env(env)

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        logger.info(f"Starting stdio transport: {self.describe()}")
        params = StdioServerParameters(
            command=self.command,
            args=self.args,
            env=self.env or None,
        )
        read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
        return read_stream, write_stream

    def describe(self) -> str:
        return " ".join([self.command, *self.args])


class HttpTransport(Transport):
    """Streamable HTTP transport to a remote MCP endpoint."""

    def __init__(self, url: str, headers: Mapping[str, str] | None = None):
        self.url = url
        self.headers = dict(headers or {})

    async def open(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        logger.info(f"Opening HTTP transport: {self.url}")
        read_stream, write_stream, _ = await stack.enter_async_context(
            streamablehttp_client(self.url, headers=self.headers)
        )
        return read_stream, write_stream

    def describe(self) -> str:
        return self.url


def filter_env(env: Mapping[str, str | None] | None) -> dict[str, str]:
    """Drop undefined (None) values from an environment mapping."""
    if not env:
        return {}
    return {key: value for key, value in env.items() if value is not None}


def transport_for(descriptor: ServerDescriptor) -> Transport:
    """Pick the transport matching the descriptor's transport kind."""
    if descriptor.transport is TransportKind.HTTP:
        return HttpTransport(descriptor.url, descriptor.headers)
    if descriptor.transport is TransportKind.STDIO:
        return StdioTransport(descriptor.command, descriptor.args, descriptor.env)
    raise ValueError(f"Unsupported transport type: {descriptor.transport}")
