"""Tests for envelope metadata creation and validation."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta, timezone

import pytest

from packages.crm_shared.envelope import EnvelopeKind, new_meta, validate_meta
from packages.crm_shared.ids import is_ulid_str


def test_new_meta_generates_ids_and_normalizes_naive_timestamp() -> None:
    """new_meta should create ids and attach UTC to naive timestamps."""
    timestamp = datetime(2026, 1, 1, 12, 0, 0)

    meta = new_meta(
        kind=EnvelopeKind.COMMAND,
        source="service_orchestrator",
        principal="user-1",
        timestamp=timestamp,
    )

    assert is_ulid_str(meta.envelope_id)
    assert is_ulid_str(meta.trace_id)
    assert meta.parent_id == ""
    assert meta.timestamp == timestamp.replace(tzinfo=UTC)
    assert meta.source == "service_orchestrator"


def test_new_meta_normalizes_aware_timestamp_to_utc() -> None:
    """new_meta should convert aware timestamps into UTC."""
    local_tz = timezone(timedelta(hours=-5))

    meta = new_meta(
        kind=EnvelopeKind.EVENT,
        source="service_approval_workflow",
        principal="user-1",
        timestamp=datetime(2026, 1, 1, 7, 0, 0, tzinfo=local_tz),
    )

    assert meta.timestamp == datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def test_new_meta_keeps_supplied_trace_id() -> None:
    """Callers propagate an existing trace id through new metadata."""
    meta = new_meta(
        kind=EnvelopeKind.COMMAND,
        source="agent",
        principal="user-1",
        trace_id="trace-123",
    )

    assert meta.trace_id == "trace-123"


def test_validate_meta_rejects_unspecified_kind() -> None:
    """validate_meta should fail when kind is unspecified."""
    meta = new_meta(kind=EnvelopeKind.UNSPECIFIED, source="agent", principal="u")

    with pytest.raises(ValueError, match="metadata.kind must be specified"):
        validate_meta(meta)


def test_validate_meta_rejects_blank_principal() -> None:
    """validate_meta should name the missing field."""
    meta = replace(
        new_meta(kind=EnvelopeKind.COMMAND, source="agent", principal="u"),
        principal="",
    )

    with pytest.raises(ValueError, match="metadata.principal is required"):
        validate_meta(meta)


def test_validate_meta_accepts_complete_metadata() -> None:
    """Complete metadata passes validation silently."""
    validate_meta(new_meta(kind=EnvelopeKind.RESULT, source="agent", principal="u"))
