"""Shared async Postgres substrate primitives for CRM action services."""

from resources.substrates.postgres.bootstrap import (
    bootstrap_service_schema,
    bootstrap_service_schemas,
)
from resources.substrates.postgres.component import MANIFEST, RESOURCE_COMPONENT_ID
from resources.substrates.postgres.config import (
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)
from resources.substrates.postgres.substrate import (
    PostgresHealthStatus,
    PostgresSubstrate,
    SharedPostgresSubstrate,
)

__all__ = [
    "MANIFEST",
    "RESOURCE_COMPONENT_ID",
    "PostgresHealthStatus",
    "PostgresSettings",
    "PostgresSubstrate",
    "ServiceSchemaSessionProvider",
    "SharedPostgresSubstrate",
    "bootstrap_service_schema",
    "bootstrap_service_schemas",
    "create_postgres_engine",
    "create_session_factory",
    "normalize_postgres_error",
    "ping",
    "resolve_postgres_settings",
    "transactional_session",
]
