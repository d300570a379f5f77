"""Async SQLAlchemy engine construction for shared Postgres substrate."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from resources.substrates.postgres.config import PostgresSettings


def create_postgres_engine(config: PostgresSettings) -> AsyncEngine:
    """Construct a configured async SQLAlchemy engine using asyncpg."""
    connect_args = {
        "timeout": config.connect_timeout_seconds,
        "ssl": config.sslmode,
    }
    return create_async_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_pre_ping=config.pool_pre_ping,
        connect_args=connect_args,
    )
