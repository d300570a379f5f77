"""Schema shape tests for Approval Workflow tables."""

from __future__ import annotations

from services.action.approval_workflow.data.runtime import (
    approval_workflow_postgres_schema,
)
from services.action.approval_workflow.data.schema import approval_requests, metadata


def test_table_is_registered_without_fixed_schema() -> None:
    """Tables are schema-less so bootstrap can translate them."""
    assert set(metadata.tables) == {"approval_requests"}
    assert approval_requests.schema is None


def test_resolution_columns_are_nullable_until_resolved() -> None:
    """Pending rows carry no resolution; status and expiry are required."""
    assert approval_requests.c.status.nullable is False
    assert approval_requests.c.expires_at.nullable is False
    assert approval_requests.c.resolved_at.nullable is True
    assert approval_requests.c.resolution.nullable is True


def test_schema_name_follows_component_id() -> None:
    """Runtime schema name is derived from the component id."""
    assert approval_workflow_postgres_schema() == "service_approval_workflow"
