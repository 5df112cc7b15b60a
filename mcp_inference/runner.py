"""
Run inference end-to-end: descriptors → connections → loop → answer.

This is the host flow that ties the pieces together:
1. Skip everything tool-related when tools are disabled
2. Collect descriptors from the registry (per credentials) and the config file
3. Connect to each server independently
4. Run the multi-server loop, or fall back to simple inference when
   nothing is configured or nothing connected
5. Close every connection
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from mcp_inference.config import load_mcp_config
from mcp_inference.inference import multi_mcp_inference, simple_inference
from mcp_inference.manager import ToolServerManager
from mcp_inference.models import (
    AvailabilityReport,
    CredentialBag,
    InferenceRequest,
    ServerDescriptor,
)
from mcp_inference.registry import ServerRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    answer: str | None
    report: AvailabilityReport | None = None
    connected_servers: list[str] = field(default_factory=list)


def collect_descriptors(
    report: AvailabilityReport | None,
    file_descriptors: list[ServerDescriptor],
) -> list[ServerDescriptor]:
    """Registry descriptors first, then config-file ones with unseen ids."""
    descriptors = list(report.available) if report is not None else []
    seen = {d.id for d in descriptors}
    for descriptor in file_descriptors:
        if descriptor.id in seen:
            logger.warning(f"Server {descriptor.id} configured twice, keeping the first")
            continue
        seen.add(descriptor.id)
        descriptors.append(descriptor)
    return descriptors


def _log_unavailable(report: AvailabilityReport | None) -> None:
    if report is None or not report.unavailable:
        return
    listed = ", ".join(f"{u.server_id} ({u.reason})" for u in report.unavailable)
    logger.info(f"Unavailable servers: {listed}")


async def run(
    request: InferenceRequest,
    enable_tools: bool = True,
    config_path: str | Path | None = None,
    credentials: Mapping[str, CredentialBag] | None = None,
    registry: ServerRegistry | None = None,
    client: Any = None,
    min_servers: int = 1,
) -> RunResult:
    """
    Answer `request`, using MCP tools when enabled and reachable.

    Args:
        request: The prepared chat request.
        enable_tools: False skips tool servers entirely.
        config_path: `.mcp.json` location (default: .github/.mcp.json).
        credentials: Per-server credential bags for the registry families.
                     None skips the registry.
        registry: Registry to use with `credentials` (default: built-ins).
        client: Chat-completion client override.
        min_servers: Servers wanted for a full run. Fewer only logs a
                     warning; inference proceeds with what connected.
    """
    if not enable_tools:
        logger.info("Running simple inference without MCP tools")
        return RunResult(answer=await simple_inference(request, client=client))

    report = None
    if credentials is not None:
        registry = registry or default_registry()
        report = registry.create_configs_with_availability(credentials)

    descriptors = collect_descriptors(report, load_mcp_config(config_path))

    if not descriptors:
        logger.warning("No MCP servers configured, falling back to simple inference")
        _log_unavailable(report)
        return RunResult(answer=await simple_inference(request, client=client), report=report)

    async with ToolServerManager() as manager:
        handles = await manager.connect_all(descriptors)

        if not handles:
            logger.warning("No MCP servers connected successfully, falling back to simple inference")
            _log_unavailable(report)
            answer = await simple_inference(request, client=client)
            return RunResult(answer=answer, report=report)

        too_few = len(handles) < min_servers or (
            report is not None and not ServerRegistry.has_minimum_servers(report, min_servers)
        )
        if too_few:
            logger.warning(
                f"Only {len(handles)} servers connected, but {min_servers} required. "
                f"Proceeding with available servers."
            )

        names = [h.name for h in handles]
        logger.info(f"Running multi-server inference with {len(handles)} connected servers: {', '.join(names)}")
        _log_unavailable(report)
        answer = await multi_mcp_inference(request, handles, client=client)
        return RunResult(answer=answer, report=report, connected_servers=names)
