"""Tests for Postgres substrate readiness probes and error mapping."""

from __future__ import annotations

import pytest

from packages.crm_shared.errors import ErrorCategory, codes
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider


class _FakeConnection:
    """Minimal async context-managed connection double capturing executes."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object] | None]] = []

    async def __aenter__(self) -> "_FakeConnection":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    async def execute(self, statement, params=None) -> None:
        self.calls.append((str(statement), params))


class _FakeEngine:
    """Minimal engine double exposing ``connect``."""

    def __init__(self, conn: _FakeConnection) -> None:
        self._conn = conn

    def connect(self) -> _FakeConnection:
        return self._conn


class UniqueViolationError(Exception):
    """Driver-style unique violation recognized by class name."""


class OperationalError(Exception):
    """Driver-style operational failure recognized by class name."""


@pytest.mark.asyncio
async def test_ping_applies_statement_timeout_via_set_config() -> None:
    """Ping should set statement timeout with set_config then run SELECT 1."""
    conn = _FakeConnection()

    assert await ping(_FakeEngine(conn), timeout_seconds=1.2) is True
    assert conn.calls[0] == (
        "SELECT set_config('statement_timeout', :timeout_value, false)",
        {"timeout_value": "1200ms"},
    )
    assert conn.calls[1] == ("SELECT 1", None)


@pytest.mark.asyncio
async def test_ping_returns_false_when_connection_or_query_fails() -> None:
    """Ping should degrade cleanly on probe exceptions."""

    class _FailingConnection(_FakeConnection):
        async def execute(self, statement, params=None) -> None:
            del statement, params
            raise RuntimeError("boom")

    assert await ping(_FakeEngine(_FailingConnection()), timeout_seconds=1.0) is False


def test_unique_violation_maps_to_conflict() -> None:
    """Duplicate keys surface as conflict-category errors."""
    error = normalize_postgres_error(UniqueViolationError("dup"))

    assert error.category == ErrorCategory.CONFLICT
    assert error.code == codes.ALREADY_EXISTS


def test_operational_error_maps_to_retryable_dependency() -> None:
    """Connectivity failures are retryable dependency errors."""
    error = normalize_postgres_error(OperationalError("server closed"))

    assert error.category == ErrorCategory.DEPENDENCY
    assert error.retryable is True


def test_schema_session_provider_rejects_malformed_schema() -> None:
    """Schema names must be safe to interpolate into search_path."""
    with pytest.raises(ValueError):
        ServiceSchemaSessionProvider(session_factory=object(), schema="bad;drop")
