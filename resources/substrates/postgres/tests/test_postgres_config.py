"""Tests for Postgres shared configuration and engine wiring."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

import resources.substrates.postgres.engine as engine_module
from packages.crm_shared.config import CrmSettings
from resources.substrates.postgres.config import (
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine


def test_postgres_settings_pool_pre_ping_defaults_to_true() -> None:
    """Postgres settings should enable pool pre-ping by default."""
    assert PostgresSettings().pool_pre_ping is True


def test_postgres_settings_accept_boolean_like_false() -> None:
    """String false-like values should coerce for pool pre-ping."""
    config = PostgresSettings(pool_pre_ping="false")
    assert config.pool_pre_ping is False


def test_postgres_settings_reject_unknown_sslmode() -> None:
    """Only libpq-compatible ssl modes are accepted."""
    with pytest.raises(ValidationError):
        PostgresSettings(sslmode="sometimes")


def test_resolve_postgres_settings_reads_substrate_namespace() -> None:
    """Resolver should hydrate settings from ``components.substrate.postgres``."""
    settings = CrmSettings(
        components={
            "substrate": {
                "postgres": {
                    "url": "postgresql+asyncpg://u:p@db:5432/crm",
                    "pool_size": 2,
                }
            }
        }
    )

    resolved = resolve_postgres_settings(settings)

    assert resolved.url == "postgresql+asyncpg://u:p@db:5432/crm"
    assert resolved.pool_size == 2


def test_engine_passes_pool_and_connect_options(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Engine builder should pass pool and asyncpg connect options through."""
    captured: dict[str, object] = {}

    def fake_create_async_engine(url: str, **kwargs: object) -> object:
        captured["url"] = url
        captured.update(kwargs)
        return object()

    monkeypatch.setattr(engine_module, "create_async_engine", fake_create_async_engine)

    create_postgres_engine(
        PostgresSettings(pool_pre_ping=False, connect_timeout_seconds=3.0)
    )

    assert captured["pool_pre_ping"] is False
    assert captured["connect_args"] == {"timeout": 3.0, "ssl": "prefer"}
