"""Tests for envelope model and builder behavior."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from packages.crm_shared.envelope import (
    Envelope,
    EnvelopeKind,
    EnvelopeMeta,
    failure,
    new_meta,
    success,
)
from packages.crm_shared.errors import ErrorCategory, ErrorDetail


def _meta() -> EnvelopeMeta:
    """Return deterministic metadata for envelope tests."""
    return new_meta(
        kind=EnvelopeKind.RESULT,
        source="service_approval_workflow",
        principal="user-1",
        timestamp=datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC),
        envelope_id="env-1",
        trace_id="trace-1",
    )


def _error(code: str = "INVALID_ARGUMENT") -> ErrorDetail:
    """Return a deterministic error detail for envelope tests."""
    return ErrorDetail(
        code=code,
        message="Invalid input",
        category=ErrorCategory.VALIDATION,
        retryable=False,
    )


def test_success_builder_returns_ok_envelope_with_payload() -> None:
    """success should build an ok envelope with payload and no errors."""
    envelope = success(meta=_meta(), payload={"request_id": "01ABC"})

    assert envelope.ok is True
    assert envelope.has_payload is True
    assert envelope.payload is not None
    assert envelope.payload.value == {"request_id": "01ABC"}
    assert envelope.errors == []
    assert envelope.error_codes == ()


def test_failure_builder_keeps_payload_next_to_errors() -> None:
    """failure may carry the payload that explains the error."""
    envelope = failure(
        meta=_meta(),
        errors=[_error("APPROVAL_EXPIRED")],
        payload={"request_id": "01ABC"},
    )

    assert envelope.ok is False
    assert envelope.has_payload is True
    assert envelope.payload is not None
    assert envelope.payload.value == {"request_id": "01ABC"}
    assert envelope.error_codes == ("APPROVAL_EXPIRED",)


def test_failure_builder_without_payload() -> None:
    """failure without a payload leaves payload unset."""
    envelope = failure(meta=_meta(), errors=[_error(), _error("NOT_FOUND")])

    assert envelope.has_payload is False
    assert envelope.error_codes == ("INVALID_ARGUMENT", "NOT_FOUND")


def test_envelope_model_validation_rejects_invalid_error_shape() -> None:
    """Envelope model validation should fail for malformed error entries."""
    with pytest.raises(ValidationError):
        Envelope[dict[str, str]].model_validate(
            {
                "metadata": _meta(),
                "payload": {"value": {"request_id": "01ABC"}},
                "errors": [{"code": "BAD"}],
            }
        )


def test_envelope_model_validation_rejects_invalid_metadata_shape() -> None:
    """Envelope model validation should fail for malformed metadata."""
    with pytest.raises(ValidationError):
        Envelope[int].model_validate(
            {
                "metadata": {"kind": "result"},
                "payload": {"value": 1},
                "errors": [],
            }
        )
