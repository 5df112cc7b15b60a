"""
Server Registry — turns per-server credentials into an availability report.

The registry is an explicit value: build one at startup (usually via
`default_registry()`), pass it where it is needed.

Usage:
    registry = default_registry()
    report = registry.create_configs_with_availability({
        "github": {"token": "..."},
    })

    if registry.has_minimum_servers(report):
        descriptors = report.available   # priority-sorted
"""

from __future__ import annotations

import logging
from typing import Mapping

from mcp_inference.factories import ServerFactory, builtin_factories
from mcp_inference.models import (
    AvailabilityReport,
    AvailabilitySummary,
    CredentialBag,
    ServerDescriptor,
    ServerStatus,
    UnavailableServer,
)

logger = logging.getLogger(__name__)


class ServerRegistry:
    """Holds server factories keyed by id, in registration order."""

    def __init__(self, factories: list[ServerFactory] | None = None):
        self._factories: dict[str, ServerFactory] = {}
        for factory in factories or []:
            self.register(factory)

    def register(self, factory: ServerFactory) -> None:
        """Register a factory. Re-registering an id replaces it in place."""
        self._factories[factory.id] = factory

    def get_factory(self, server_id: str) -> ServerFactory | None:
        return self._factories.get(server_id)

    def factories(self) -> list[ServerFactory]:
        return list(self._factories.values())

    def create_configs_with_availability(
        self,
        credentials: Mapping[str, CredentialBag],
    ) -> AvailabilityReport:
        """
        Partition every registered family into available / unavailable.

        Never raises on a bad family: build failures are recorded as
        connection-failed. Calling this twice with the same input gives
        the same partition.
        """
        built: list[ServerDescriptor] = []
        unavailable: list[UnavailableServer] = []

        for factory in self._factories.values():
            bag = credentials.get(factory.id)

            if bag is None:
                if not factory.validate({}):
                    unavailable.append(UnavailableServer(
                        server_id=factory.id,
                        reason=f"No credentials provided for {factory.name}",
                        status=ServerStatus.CREDENTIALS_MISSING,
                    ))
                    continue
                bag = {}
            elif not factory.validate(bag):
                unavailable.append(UnavailableServer(
                    server_id=factory.id,
                    reason=f"Invalid credentials for {factory.name}",
                    status=ServerStatus.INVALID_CREDENTIALS,
                ))
                continue

            try:
                descriptor = factory.build(bag)
            except Exception as e:
                logger.warning(f"Failed to create config for {factory.name}: {e}")
                unavailable.append(UnavailableServer(
                    server_id=factory.id,
                    reason=f"Failed to create config: {e}",
                    status=ServerStatus.CONNECTION_FAILED,
                ))
                continue

            built.append(descriptor)
            logger.info(f"{factory.name} server available")

        # sorted() is stable: equal priorities keep registration order
        available = tuple(sorted(built, key=lambda d: d.priority))
        summary = AvailabilitySummary(
            total=len(self._factories),
            available=len(available),
            unavailable=len(unavailable),
        )

        if unavailable:
            missing = ", ".join(u.server_id for u in unavailable)
            logger.info(
                f"Server availability: {summary.available}/{summary.total} servers available. "
                f"Unavailable: {missing}"
            )
        else:
            logger.info(f"All {summary.total} servers are available")

        return AvailabilityReport(
            available=available,
            unavailable=tuple(unavailable),
            summary=summary,
        )

    def create_configs(self, credentials: Mapping[str, CredentialBag]) -> list[ServerDescriptor]:
        """Just the available descriptors, priority-sorted."""
        return list(self.create_configs_with_availability(credentials).available)

    def get_required_credentials(self) -> dict[str, list[str]]:
        """Map each server id to the credential fields its family needs."""
        return {
            server_id: list(factory.required_fields)
            for server_id, factory in self._factories.items()
        }

    @staticmethod
    def has_minimum_servers(report: AvailabilityReport, minimum: int = 1) -> bool:
        return len(report.available) >= minimum


def default_registry() -> ServerRegistry:
    """A fresh registry holding the built-in families."""
    return ServerRegistry(builtin_factories())


def create_server_configs_from_credentials(
    credentials: Mapping[str, CredentialBag],
) -> list[ServerDescriptor]:
    return default_registry().create_configs(credentials)


def create_server_configs(
    github_token: str | None = None,
    sentry_token: str | None = None,
    datadog_api_key: str | None = None,
    datadog_app_key: str | None = None,
    azure_client_id: str | None = None,
    azure_client_secret: str | None = None,
    azure_tenant_id: str | None = None,
) -> list[ServerDescriptor]:
    """Positional-credential form of `create_server_configs_from_credentials`."""
    credentials: dict[str, dict[str, str]] = {}

    if github_token:
        credentials["github"] = {"token": github_token}
    if sentry_token:
        credentials["sentry"] = {"token": sentry_token}
    if datadog_api_key and datadog_app_key:
        credentials["datadog"] = {"apiKey": datadog_api_key, "appKey": datadog_app_key}
    if azure_client_id and azure_client_secret and azure_tenant_id:
        credentials["azure"] = {
            "clientId": azure_client_id,
            "clientSecret": azure_client_secret,
            "tenantId": azure_tenant_id,
        }

    return create_server_configs_from_credentials(credentials)
