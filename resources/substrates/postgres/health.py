"""Readiness probe for the shared Postgres substrate."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

_SET_TIMEOUT = text("SELECT set_config('statement_timeout', :timeout_value, false)")
_PROBE = text("SELECT 1")


async def ping(engine: AsyncEngine, *, timeout_seconds: float = 1.0) -> bool:
    """True when ``SELECT 1`` answers within ``timeout_seconds``.

    Any failure, connection or query, reads as not ready.
    """
    budget = f"{max(1, int(timeout_seconds * 1000))}ms"
    try:
        async with engine.connect() as connection:
            await connection.execute(_SET_TIMEOUT, {"timeout_value": budget})
            await connection.execute(_PROBE)
    except Exception:  # noqa: BLE001
        return False
    return True
