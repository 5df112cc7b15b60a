"""Tests for the server registry and availability reporting."""

import logging

import pytest

from mcp_inference.factories import DATADOG, GITHUB, ServerFactory
from mcp_inference.models import ServerDescriptor, ServerStatus, TransportKind
from mcp_inference.registry import (
    ServerRegistry,
    create_server_configs,
    create_server_configs_from_credentials,
    default_registry,
)

ALL_CREDENTIALS = {
    "github": {"token": "gh-token"},
    "sentry": {"token": "sentry-token"},
    "datadog": {"apiKey": "dd-api", "appKey": "dd-app"},
    "azure": {"clientId": "id", "clientSecret": "secret", "tenantId": "tenant"},
}


def _failing_factory():
    def explode(credentials):
        raise RuntimeError("Configuration creation failed")

    return ServerFactory(
        id="failing-server",
        name="Failing Server",
        required_fields=("some",),
        make=explode,
    )


def _fixed_factory(server_id, priority):
    descriptor = ServerDescriptor(
        id=server_id,
        name=server_id,
        transport=TransportKind.HTTP,
        url=f"https://{server_id}.example.test",
        priority=priority,
    )
    return ServerFactory(id=server_id, name=server_id, required_fields=(), make=lambda c: descriptor)


@pytest.fixture
def registry():
    return default_registry()


class TestRegistration:
    def test_registers_and_retrieves_factories(self):
        registry = ServerRegistry()
        registry.register(GITHUB)

        assert registry.get_factory("github") is GITHUB
        assert registry.get_factory("nonexistent") is None
        assert len(registry.factories()) == 1

    def test_default_registry_is_a_fresh_value(self):
        first = default_registry()
        second = default_registry()
        first.register(_failing_factory())

        assert len(first.factories()) == 5
        assert len(second.factories()) == 4


class TestCreateConfigsWithAvailability:
    def test_all_servers_available(self, registry):
        report = registry.create_configs_with_availability(ALL_CREDENTIALS)

        assert [d.id for d in report.available] == ["github", "sentry", "datadog", "azure"]
        assert report.unavailable == ()
        assert report.summary.total == 4
        assert report.summary.available == 4
        assert report.summary.unavailable == 0

    def test_missing_credentials(self, registry):
        report = registry.create_configs_with_availability({"github": {"token": "gh-token"}})

        assert [d.id for d in report.available] == ["github"]
        by_id = {u.server_id: u for u in report.unavailable}
        assert set(by_id) == {"sentry", "datadog", "azure"}

        sentry = by_id["sentry"]
        assert sentry.status is ServerStatus.CREDENTIALS_MISSING
        assert sentry.reason == "No credentials provided for Sentry MCP"
        assert sentry.checked_at is not None

    def test_invalid_credentials(self, registry):
        report = registry.create_configs_with_availability({
            "github": {"token": "gh-token"},
            "sentry": {},
            "datadog": {"apiKey": "dd-api"},
            "azure": {},
        })

        assert [d.id for d in report.available] == ["github"]
        by_id = {u.server_id: u for u in report.unavailable}
        assert by_id["sentry"].status is ServerStatus.INVALID_CREDENTIALS
        assert by_id["sentry"].reason == "Invalid credentials for Sentry MCP"
        assert by_id["datadog"].reason == "Invalid credentials for Datadog MCP"
        assert by_id["azure"].status is ServerStatus.INVALID_CREDENTIALS

    def test_build_failure_is_recorded_not_raised(self, registry):
        registry.register(_failing_factory())

        report = registry.create_configs_with_availability({
            "github": {"token": "gh-token"},
            "failing-server": {"some": "credential"},
        })

        assert len(report.available) == 1
        assert len(report.unavailable) == 4
        failing = next(u for u in report.unavailable if u.server_id == "failing-server")
        assert failing.status is ServerStatus.CONNECTION_FAILED
        assert failing.reason == "Failed to create config: Configuration creation failed"

    def test_factory_valid_with_empty_bag_is_available_without_credentials(self):
        registry = ServerRegistry([_fixed_factory("local", 5)])

        report = registry.create_configs_with_availability({})

        assert [d.id for d in report.available] == ["local"]
        assert report.unavailable == ()

    def test_credentials_for_unknown_server_are_ignored(self, registry):
        report = registry.create_configs_with_availability({"nonexistent": {"token": "x"}})

        assert report.summary.total == 4
        assert report.summary.available == 0

    @pytest.mark.parametrize("credentials", [
        {},
        {"github": {"token": "gh-token"}},
        {"sentry": {}, "datadog": {"apiKey": "dd-api"}},
        ALL_CREDENTIALS,
    ])
    def test_every_factory_lands_in_exactly_one_partition(self, registry, credentials):
        report = registry.create_configs_with_availability(credentials)

        ids = [d.id for d in report.available] + [u.server_id for u in report.unavailable]
        assert sorted(ids) == sorted(f.id for f in registry.factories())
        assert len(report.available) + len(report.unavailable) == len(registry.factories())

    def test_available_sorted_by_priority_ties_in_registration_order(self):
        registry = ServerRegistry([
            _fixed_factory("late", 9),
            _fixed_factory("tie-a", 2),
            _fixed_factory("early", 1),
            _fixed_factory("tie-b", 2),
        ])

        report = registry.create_configs_with_availability({})

        assert [d.id for d in report.available] == ["early", "tie-a", "tie-b", "late"]

    def test_idempotent(self, registry):
        credentials = {"github": {"token": "gh-token"}, "datadog": {"apiKey": "dd-api"}}

        first = registry.create_configs_with_availability(credentials)
        second = registry.create_configs_with_availability(credentials)

        assert first.available == second.available
        assert [(u.server_id, u.status) for u in first.unavailable] == \
            [(u.server_id, u.status) for u in second.unavailable]

    def test_logs_partial_availability(self, registry, caplog):
        with caplog.at_level(logging.INFO, logger="mcp_inference.registry"):
            registry.create_configs_with_availability({"github": {"token": "gh-token"}})

        assert "GitHub MCP server available" in caplog.text
        assert (
            "Server availability: 1/4 servers available. Unavailable: sentry, datadog, azure"
            in caplog.text
        )

    def test_logs_full_availability(self, registry, caplog):
        with caplog.at_level(logging.INFO, logger="mcp_inference.registry"):
            registry.create_configs_with_availability(ALL_CREDENTIALS)

        assert "All 4 servers are available" in caplog.text


class TestHasMinimumServers:
    def test_thresholds(self, registry):
        report = registry.create_configs_with_availability({
            "github": {"token": "gh-token"},
            "azure": ALL_CREDENTIALS["azure"],
        })

        assert registry.has_minimum_servers(report, 1) is True
        assert registry.has_minimum_servers(report, 2) is True
        assert registry.has_minimum_servers(report, 3) is False

    def test_zero_minimum_always_satisfied(self, registry):
        report = registry.create_configs_with_availability({})

        assert registry.has_minimum_servers(report, 0) is True
        assert registry.has_minimum_servers(report, 1) is False

    def test_default_minimum_is_one(self, registry):
        report = registry.create_configs_with_availability({"github": {"token": "gh-token"}})

        assert registry.has_minimum_servers(report) is True
        assert registry.has_minimum_servers(report, len(report.available) + 1) is False


class TestConvenienceFunctions:
    def test_create_configs_returns_available_only(self):
        registry = ServerRegistry([DATADOG, GITHUB])

        configs = registry.create_configs({
            "github": {"token": "gh-token"},
            "datadog": {"apiKey": "dd-api", "appKey": "dd-app"},
        })

        assert [c.id for c in configs] == ["github", "datadog"]

    def test_required_credentials(self, registry):
        required = registry.get_required_credentials()

        assert required["github"] == ["token"]
        assert required["sentry"] == ["token"]
        assert required["datadog"] == ["apiKey", "appKey"]
        assert required["azure"] == ["clientId", "clientSecret", "tenantId"]

    def test_create_server_configs_positional(self):
        configs = create_server_configs("gh-token", "sentry-token", "dd-api", "dd-app")

        assert [c.id for c in configs] == ["github", "sentry", "datadog"]

    def test_create_server_configs_all(self):
        configs = create_server_configs(
            "gh-token", "sentry-token", "dd-api", "dd-app", "az-id", "az-secret", "az-tenant",
        )

        assert [c.id for c in configs] == ["github", "sentry", "datadog", "azure"]

    def test_create_server_configs_only_azure(self):
        configs = create_server_configs(
            azure_client_id="az-id", azure_client_secret="az-secret", azure_tenant_id="az-tenant",
        )

        assert [c.id for c in configs] == ["azure"]

    def test_create_server_configs_from_credentials(self):
        configs = create_server_configs_from_credentials({
            "github": {"token": "gh-token"},
            "datadog": {"apiKey": "dd-api", "appKey": "dd-app"},
        })

        assert [c.id for c in configs] == ["github", "datadog"]
