"""Schema bootstrap for service-owned Postgres tables.

Each service owns one schema named after its component id; its tables are
declared schema-less and created through a schema translate map.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import AsyncEngine

from packages.crm_shared.manifest import ServiceManifest


async def bootstrap_service_schema(
    engine: AsyncEngine,
    *,
    service: ServiceManifest,
    metadata: MetaData,
) -> str:
    """Create one service schema and its tables when absent."""
    schema = service.schema_name
    async with engine.begin() as connection:
        await connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        scoped = await connection.execution_options(
            schema_translate_map={None: schema}
        )
        await scoped.run_sync(metadata.create_all)
    return schema


async def bootstrap_service_schemas(
    engine: AsyncEngine,
    *,
    services: Iterable[tuple[ServiceManifest, MetaData]],
) -> tuple[str, ...]:
    """Provision every given service schema in order."""
    provisioned: list[str] = []
    for service, metadata in services:
        provisioned.append(
            await bootstrap_service_schema(engine, service=service, metadata=metadata)
        )
    return tuple(provisioned)
