"""Shared Postgres substrate contract and implementation."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncEngine

from resources.substrates.postgres.config import PostgresSettings
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import create_session_factory


class PostgresHealthStatus(BaseModel):
    """Postgres substrate readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class PostgresSubstrate(Protocol):
    """Protocol for shared Postgres substrate operations."""

    @property
    def engine(self) -> AsyncEngine:
        """Return underlying async SQLAlchemy engine."""

    def session_provider(self, *, schema: str) -> ServiceSchemaSessionProvider:
        """Return a session provider pinned to one service schema."""

    async def health(self) -> PostgresHealthStatus:
        """Probe Postgres substrate readiness."""

    async def dispose(self) -> None:
        """Release pooled connections."""


class SharedPostgresSubstrate(PostgresSubstrate):
    """Concrete shared Postgres substrate with readiness probe."""

    def __init__(
        self, *, settings: PostgresSettings, engine: AsyncEngine | None = None
    ) -> None:
        self._settings = settings
        self._engine = create_postgres_engine(settings) if engine is None else engine
        self._session_factory = create_session_factory(self._engine)

    @property
    def engine(self) -> AsyncEngine:
        """Return underlying async SQLAlchemy engine."""
        return self._engine

    def session_provider(self, *, schema: str) -> ServiceSchemaSessionProvider:
        """Return a session provider pinned to one service schema."""
        return ServiceSchemaSessionProvider(
            session_factory=self._session_factory, schema=schema
        )

    async def health(self) -> PostgresHealthStatus:
        """Return readiness from a bounded Postgres ping."""
        ready = await ping(
            self._engine,
            timeout_seconds=self._settings.health_timeout_seconds,
        )
        return PostgresHealthStatus(
            ready=ready,
            detail="ok" if ready else "postgres ping failed",
        )

    async def dispose(self) -> None:
        """Release pooled connections."""
        await self._engine.dispose()
