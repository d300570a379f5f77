"""Table models for validation audit entries and compliance violations."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    MetaData,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

validation_audit = Table(
    "validation_audit",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("tenant_id", String(64), nullable=True),
    Column("action_id", String(64), nullable=False),
    Column("contact_id", String(64), nullable=True),
    Column("action_type", String(128), nullable=False),
    Column("trace_id", String(64), nullable=False),
    Column("is_relevant", Boolean, nullable=False),
    Column("confidence", Float, nullable=False),
    Column("validation_method", String(32), nullable=False),
    Column("reason", Text, nullable=False, server_default=""),
    Column("result_json", JSONB, nullable=False),
    Column("checked_at", DateTime(timezone=True), nullable=False),
    Column(
        "recorded_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    Index("ix_validation_audit_contact_checked", "contact_id", "checked_at"),
)

compliance_violations = Table(
    "compliance_violations",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("tenant_id", String(64), nullable=False),
    Column("violation_type", String(128), nullable=False),
    Column("agent_type", String(128), nullable=False),
    Column("action_type", String(128), nullable=False),
    Column("trace_id", String(64), nullable=False),
    Column("severity", String(16), nullable=False),
    Column("occurred_at", DateTime(timezone=True), nullable=False),
    Index("ix_compliance_violations_tenant_occurred", "tenant_id", "occurred_at"),
)
