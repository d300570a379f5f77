"""Schema shape tests for Procedural Memory tables."""

from __future__ import annotations

from services.action.procedural_memory.data.runtime import (
    procedural_memory_postgres_schema,
)
from services.action.procedural_memory.data.schema import (
    metadata,
    procedure_traces,
    procedures,
)


def test_tables_are_registered_without_fixed_schema() -> None:
    """Tables are schema-less so bootstrap can translate them."""
    assert set(metadata.tables) == {"procedures", "procedure_traces"}
    assert procedures.schema is None
    assert procedure_traces.schema is None


def test_every_table_is_tenant_partitioned() -> None:
    """Both tables carry a non-null tenant column."""
    for table in (procedures, procedure_traces):
        assert table.c.tenant_id.nullable is False


def test_procedure_scope_version_is_unique() -> None:
    """Concurrent writers cannot claim the same version in one scope."""
    constraint_names = {constraint.name for constraint in procedures.constraints}
    assert "uq_procedures_scope_version" in constraint_names


def test_schema_name_follows_component_id() -> None:
    """Runtime schema name is derived from the component id."""
    assert procedural_memory_postgres_schema() == "service_procedural_memory"
