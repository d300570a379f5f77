"""Sessions confined to the schema a service owns."""

from __future__ import annotations

import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resources.substrates.postgres.session import transactional_session

_SCHEMA_NAME = re.compile(r"[A-Za-z0-9_]+")


class ServiceSchemaSessionProvider:
    """Hands out transactions whose ``search_path`` starts at one schema.

    The schema name is interpolated into SQL, so only letters, digits and
    underscores are accepted.
    """

    def __init__(
        self, *, session_factory: async_sessionmaker[AsyncSession], schema: str
    ) -> None:
        if not schema:
            raise ValueError("postgres schema is required")
        if _SCHEMA_NAME.fullmatch(schema) is None:
            raise ValueError("postgres schema must be alphanumeric/underscore")
        self._session_factory = session_factory
        self._schema = schema

    @property
    def schema(self) -> str:
        return self._schema

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with transactional_session(self._session_factory) as session:
            await session.execute(
                text(f"SET LOCAL search_path TO {self._schema}, public")
            )
            yield session
