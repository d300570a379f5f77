"""Table models for approval requests."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, MetaData, String, Table, Text
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

approval_requests = Table(
    "approval_requests",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("tenant_id", String(64), nullable=False),
    Column("user_id", String(128), nullable=False),
    Column("status", String(16), nullable=False),
    Column("action_json", JSONB, nullable=False),
    Column("relevance_json", JSONB, nullable=False),
    Column("reason", Text, nullable=False, server_default=""),
    Column("original_overrides", JSONB, nullable=False),
    Column("alternatives_json", JSONB, nullable=False),
    Column("trace_id", String(64), nullable=False),
    Column("requested_at", DateTime(timezone=True), nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("resolved_at", DateTime(timezone=True), nullable=True),
    Column("resolution", String(16), nullable=True),
    Column("resolved_by", String(128), nullable=True),
    Index("ix_approval_requests_user_status", "user_id", "status", "requested_at"),
    Index("ix_approval_requests_status_expires", "status", "expires_at"),
)
