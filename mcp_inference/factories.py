"""
Server factories — one capability record per tool-provider family.

A factory knows which credential fields its family needs, how to turn a
credential bag into a ServerDescriptor, and which tools it permits the
model to see. Tools outside the allow-list are never shown to the model.

Adding a family is a matter of writing a builder function and a
ServerFactory entry:

    def _build_acme(credentials):
        return ServerDescriptor(id="acme", name="Acme MCP", ...)

    ACME = ServerFactory(
        id="acme",
        name="Acme MCP",
        required_fields=("token",),
        make=_build_acme,
        allowed_tools=("search",),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from mcp_inference.models import CredentialBag, ServerDescriptor, TransportKind

NPX_QUIET_ENV = {
    "NO_UPDATE_NOTIFIER": "1",
    "NPM_CONFIG_UPDATE_NOTIFIER": "false",
}


class MissingCredentialError(ValueError):
    """Raised when a descriptor is built from an incomplete credential bag."""

    def __init__(self, server_name: str, missing: list[str]):
        self.server_name = server_name
        self.missing = missing
        super().__init__(f"{server_name} requires {_join_fields(missing)}")


def _join_fields(fields: list[str]) -> str:
    if len(fields) <= 1:
        return "".join(fields)
    if len(fields) == 2:
        return f"{fields[0]} and {fields[1]}"
    return ", ".join(fields[:-1]) + f", and {fields[-1]}"


@dataclass(frozen=True)
class ServerFactory:
    """
    Capability record for one server family.

    `make` receives a bag that already passed validation; `check` replaces
    the default "every required field is non-empty" predicate when a
    family has looser rules.
    """
    id: str
    name: str
    required_fields: tuple[str, ...]
    make: Callable[[CredentialBag], ServerDescriptor]
    allowed_tools: tuple[str, ...] = ()
    check: Callable[[CredentialBag], bool] | None = None

    def missing_fields(self, credentials: CredentialBag) -> list[str]:
        return [f for f in self.required_fields if not credentials.get(f)]

    def validate(self, credentials: CredentialBag) -> bool:
        """Pure predicate: can `build` succeed with these credentials?"""
        if self.check is not None:
            return bool(self.check(credentials))
        return not self.missing_fields(credentials)

    def build(self, credentials: CredentialBag) -> ServerDescriptor:
        """
        Produce a descriptor. Call `validate` first.

        A non-empty `allowed_tools` becomes the descriptor's allow-list.
        """
        if not self.validate(credentials):
            raise MissingCredentialError(
                self.name, self.missing_fields(credentials) or list(self.required_fields)
            )
        descriptor = self.make(credentials)
        if self.allowed_tools:
            descriptor = replace(descriptor, tool_allow_list=frozenset(self.allowed_tools))
        return descriptor


# ── Built-in families ────────────────────────────────────

GITHUB_TOOLS = ("search_issues", "issue_read", "search_code", "search_pull_requests")
SENTRY_TOOLS = ("get_issue_details", "search_issues")
DATADOG_TOOLS = ("get_dashboard", "search_monitors", "get_metrics")
AZURE_TOOLS = ("kusto",)


def _build_github(credentials: CredentialBag) -> ServerDescriptor:
    return ServerDescriptor(
        id="github",
        name="GitHub MCP",
        transport=TransportKind.HTTP,
        url="https://api.githubcopilot.com/mcp/",
        headers={
            "Authorization": f"Bearer {credentials['token']}",
            "X-MCP-Readonly": "true",
        },
        readonly=True,
        priority=1,
    )


def _build_sentry(credentials: CredentialBag) -> ServerDescriptor:
    return ServerDescriptor(
        id="sentry",
        name="Sentry MCP",
        transport=TransportKind.STDIO,
        command="npx",
        args=["-y", "--no-update-notifier", "@sentry/mcp-server@latest", "--host=github.sentry.io"],
        env={
            "SENTRY_ACCESS_TOKEN": credentials["token"],
            "SENTRY_HOST": "github.sentry.io",
            **NPX_QUIET_ENV,
        },
        priority=2,
    )


def _build_datadog(credentials: CredentialBag) -> ServerDescriptor:
    return ServerDescriptor(
        id="datadog",
        name="Datadog MCP",
        transport=TransportKind.HTTP,
        url="https://mcp.datadoghq.com/api/unstable/mcp-server/mcp",
        headers={
            "DD_API_KEY": credentials["apiKey"],
            "DD_APPLICATION_KEY": credentials["appKey"],
        },
        priority=3,
    )


def _build_azure(credentials: CredentialBag) -> ServerDescriptor:
    return ServerDescriptor(
        id="azure",
        name="Azure MCP",
        transport=TransportKind.STDIO,
        command="npx",
        args=["-y", "--no-update-notifier", "@azure/mcp@latest", "server", "start"],
        env={
            "AZURE_CLIENT_ID": credentials["clientId"],
            "AZURE_CLIENT_SECRET": credentials["clientSecret"],
            "AZURE_TENANT_ID": credentials["tenantId"],
            **NPX_QUIET_ENV,
        },
        priority=4,
    )


GITHUB = ServerFactory(
    id="github",
    name="GitHub MCP",
    required_fields=("token",),
    make=_build_github,
    allowed_tools=GITHUB_TOOLS,
)

SENTRY = ServerFactory(
    id="sentry",
    name="Sentry MCP",
    required_fields=("token",),
    make=_build_sentry,
    allowed_tools=SENTRY_TOOLS,
)

DATADOG = ServerFactory(
    id="datadog",
    name="Datadog MCP",
    required_fields=("apiKey", "appKey"),
    make=_build_datadog,
    allowed_tools=DATADOG_TOOLS,
)

AZURE = ServerFactory(
    id="azure",
    name="Azure MCP",
    required_fields=("clientId", "clientSecret", "tenantId"),
    make=_build_azure,
    allowed_tools=AZURE_TOOLS,
)


def builtin_factories() -> list[ServerFactory]:
    """The built-in families in registration order."""
    return [GITHUB, SENTRY, DATADOG, AZURE]
