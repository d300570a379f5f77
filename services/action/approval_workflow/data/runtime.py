"""Approval Workflow-owned Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.manifest import component_id_to_schema_name
from resources.substrates.postgres import (
    ServiceSchemaSessionProvider,
    bootstrap_service_schema,
    create_postgres_engine,
    create_session_factory,
    ping,
)
from resources.substrates.postgres.config import resolve_postgres_settings
from services.action.approval_workflow.component import MANIFEST, SERVICE_COMPONENT_ID
from services.action.approval_workflow.data.schema import metadata


@dataclass(frozen=True)
class ApprovalWorkflowPostgresRuntime:
    """Concrete Approval Workflow handle for schema-scoped Postgres access."""

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    schema_sessions: ServiceSchemaSessionProvider
    health_timeout_seconds: float

    @classmethod
    def from_settings(
        cls, settings: CrmSettings
    ) -> "ApprovalWorkflowPostgresRuntime":
        """Build Approval Workflow DB runtime from typed application settings."""
        postgres_config = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres_config)
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            schema_sessions=ServiceSchemaSessionProvider(
                session_factory=session_factory,
                schema=approval_workflow_postgres_schema(),
            ),
            health_timeout_seconds=postgres_config.health_timeout_seconds,
        )

    async def bootstrap(self) -> None:
        """Create the owned schema and tables when missing."""
        await bootstrap_service_schema(
            self.engine,
            service=MANIFEST,
            metadata=metadata,
        )

    async def is_healthy(self) -> bool:
        """Return ``True`` when backing Postgres connection is reachable."""
        return await ping(self.engine, timeout_seconds=self.health_timeout_seconds)


def approval_workflow_postgres_schema() -> str:
    """Resolve canonical Approval Workflow schema name from component identity."""
    return component_id_to_schema_name(SERVICE_COMPONENT_ID)
