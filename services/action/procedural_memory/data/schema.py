"""Table models for compiled procedures and planning traces."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

procedures = Table(
    "procedures",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("tenant_id", String(64), nullable=False),
    Column("organization_id", String(64), nullable=True),
    Column("industry", String(128), nullable=True),
    Column("action_type", String(128), nullable=False),
    Column("channel", String(64), nullable=False),
    Column("version", Integer, nullable=False),
    Column("steps", JSONB, nullable=False, server_default="[]"),
    Column("parameters", JSONB, nullable=False, server_default="{}"),
    Column("enabled", Boolean, nullable=False, server_default="true"),
    Column("ring", String(16), nullable=False, server_default="ga"),
    Column("preconditions", JSONB, nullable=False, server_default="[]"),
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=func.now()
    ),
    UniqueConstraint(
        "tenant_id",
        "action_type",
        "channel",
        "organization_id",
        "industry",
        "version",
        name="uq_procedures_scope_version",
        postgresql_nulls_not_distinct=True,
    ),
    Index("ix_procedures_tenant_action_channel", "tenant_id", "action_type", "channel"),
)

procedure_traces = Table(
    "procedure_traces",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("trace_id", String(64), nullable=False),
    Column("tenant_id", String(64), nullable=False),
    Column("organization_id", String(64), nullable=True),
    Column("action_type", String(128), nullable=False),
    Column("channel", String(64), nullable=False),
    Column("fingerprint", String(512), nullable=False),
    Column("redacted_inputs", JSONB, nullable=False, server_default="{}"),
    Column("outcome", String(32), nullable=False),
    Column("step_count", Integer, nullable=False, server_default="0"),
    Column("error_code", String(64), nullable=True),
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=func.now()
    ),
    Index("ix_procedure_traces_tenant_created", "tenant_id", "created_at"),
)
