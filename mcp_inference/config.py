"""
Configuration sources: the `.mcp.json` server file and environment credentials.

File format:

    {
      "mcpServers": {
        "docs": {"url": "https://example.com/mcp", "headers": {"Authorization": "Bearer ${DOCS_TOKEN}"}},
        "local": {"command": "uvx", "args": ["my-server"], "env": {"KEY": "$MY_KEY"}, "tools": ["search"]}
      }
    }

`${VAR}` and `$VAR` placeholders are replaced from the environment;
placeholders whose variable is unset are left as written.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

from mcp_inference.models import ServerDescriptor, TransportKind

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)")

# server id → {credential field: environment variable}
CREDENTIAL_ENV_VARS: dict[str, dict[str, str]] = {
    "github": {"token": "GITHUB_TOKEN"},
    "sentry": {"token": "SENTRY_ACCESS_TOKEN"},
    "datadog": {"apiKey": "DATADOG_API_KEY", "appKey": "DATADOG_APP_KEY"},
    "azure": {
        "clientId": "AZURE_CLIENT_ID",
        "clientSecret": "AZURE_CLIENT_SECRET",
        "tenantId": "AZURE_TENANT_ID",
    },
}


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """`.github/.mcp.json` under $GITHUB_WORKSPACE, else under the cwd."""
    environ = os.environ if environ is None else environ
    workspace = environ.get("GITHUB_WORKSPACE") or os.getcwd()
    return Path(workspace) / ".github" / ".mcp.json"


def substitute_env_vars(value: str, environ: Mapping[str, str] | None = None) -> str:
    environ = os.environ if environ is None else environ

    def replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        return environ.get(name) or match.group(0)

    return _PLACEHOLDER.sub(replace, value)


def _expect(server_name: str, server: dict[str, Any], key: str, kind: type) -> Any:
    value = server[key]
    if not isinstance(value, kind):
        expected = "a list" if kind is list else "an object"
        raise ValueError(f"Server {server_name} '{key}' must be {expected}")
    return value


def _tool_names(server_name: str, tools: Any) -> list[str]:
    if not isinstance(tools, list) or not all(isinstance(t, str) for t in tools):
        raise ValueError(f"Server {server_name} 'tools' must be a list of strings")
    return list(tools)


def process_server_config(
    server_name: str,
    server: Any,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    Return a copy of one `mcpServers` entry with placeholders substituted.

    Raises ValueError for an entry that is not an object, for args, env
    or headers of the wrong container type, for a non-string value where
    a string is expected, and for `tools` that is not a list of strings.
    """
    if not isinstance(server, dict):
        raise ValueError(f"Server {server_name} config must be an object")

    def sub(value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError(
                f"Server {server_name} expected a string, got {type(value).__name__}: {value!r}"
            )
        return substitute_env_vars(value, environ)

    out: dict[str, Any] = {}
    if server.get("command"):
        out["command"] = sub(server["command"])
    if server.get("args"):
        out["args"] = [sub(arg) for arg in _expect(server_name, server, "args", list)]
    if server.get("env"):
        out["env"] = {k: sub(v) for k, v in _expect(server_name, server, "env", dict).items()}
    if server.get("url"):
        out["url"] = sub(server["url"])
    if server.get("headers"):
        out["headers"] = {k: sub(v) for k, v in _expect(server_name, server, "headers", dict).items()}
    if server.get("tools") is not None:
        out["tools"] = _tool_names(server_name, server["tools"])
    return out


def parse_server_config(server_name: str, server: dict[str, Any], priority: int) -> ServerDescriptor:
    """One `mcpServers` entry → ServerDescriptor. `url` wins over `command`."""
    allow_list = frozenset(server["tools"]) if server.get("tools") else None

    if server.get("url"):
        return ServerDescriptor(
            id=server_name,
            name=server_name,
            transport=TransportKind.HTTP,
            url=server["url"],
            headers=dict(server.get("headers") or {}),
            priority=priority,
            tool_allow_list=allow_list,
        )
    if server.get("command"):
        return ServerDescriptor(
            id=server_name,
            name=server_name,
            transport=TransportKind.STDIO,
            command=server["command"],
            args=list(server.get("args") or []),
            env=dict(server.get("env") or {}),
            priority=priority,
            tool_allow_list=allow_list,
        )
    raise ValueError(
        f"Server {server_name} must have either 'url' (for HTTP) or 'command' (for stdio)"
    )


def load_mcp_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[ServerDescriptor]:
    """
    Load server descriptors from a `.mcp.json` file.

    Never raises: a missing or broken file yields an empty list, and a
    broken entry is skipped. Priorities follow file order starting at 1.
    """
    file_path = Path(path) if path is not None else default_config_path(environ)

    if not file_path.exists():
        logger.info(f"No .mcp.json file found at {file_path}")
        return []

    try:
        logger.info(f"Loading MCP configuration from {file_path}")
        config = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to load MCP configuration from {file_path}: {e}")
        return []

    if not isinstance(config, dict) or not isinstance(config.get("mcpServers"), dict):
        logger.warning("Invalid .mcp.json format: mcpServers key is missing or not an object")
        return []

    descriptors = []
    priority = 1
    for server_name, server in config["mcpServers"].items():
        try:
            processed = process_server_config(server_name, server, environ)
            descriptors.append(parse_server_config(server_name, processed, priority))
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to parse MCP server config for {server_name}: {e}")
            continue
        logger.info(f"Loaded MCP server configuration: {server_name}")
        priority += 1

    logger.info(f"Loaded {len(descriptors)} MCP server configuration(s) from {file_path}")
    return descriptors


def credentials_from_env(environ: Mapping[str, str] | None = None) -> dict[str, dict[str, str]]:
    """
    Credential bags for the built-in families.

    A family with none of its variables set gets no bag at all; one with
    only some set gets a partial bag (and will be reported invalid).
    """
    environ = os.environ if environ is None else environ
    credentials = {}
    for server_id, fields in CREDENTIAL_ENV_VARS.items():
        bag = {field: environ[var] for field, var in fields.items() if environ.get(var)}
        if bag:
            credentials[server_id] = bag
    return credentials
