"""Metadata checks run at service boundaries before an envelope is trusted."""

from __future__ import annotations

from datetime import datetime

from .meta import EnvelopeKind, EnvelopeMeta

_REQUIRED_TEXT = ("envelope_id", "trace_id", "source", "principal")


def validate_meta(meta: EnvelopeMeta) -> None:
    """Raise ``ValueError`` naming the first missing or unusable field."""
    for name in _REQUIRED_TEXT:
        value = getattr(meta, name)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"metadata.{name} is required")
    if not isinstance(meta.timestamp, datetime):
        raise ValueError("metadata.timestamp is required")
    if not isinstance(meta.parent_id, str):
        raise ValueError("metadata.parent_id must be a string")
    try:
        kind = EnvelopeKind(meta.kind)
    except ValueError:
        kind = EnvelopeKind.UNSPECIFIED
    if kind is EnvelopeKind.UNSPECIFIED:
        raise ValueError("metadata.kind must be specified")
