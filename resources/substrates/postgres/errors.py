"""Translate database driver and SQLAlchemy failures into shared errors.

Drivers differ in exception classes, so matching is by class name and
message rather than by ``isinstance``.
"""

from __future__ import annotations

from packages.crm_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
)

_DUPLICATE_MARKERS = ("UniqueViolation", "IntegrityError")
_UNAVAILABLE_MARKERS = ("OperationalError", "ConnectionError")
_REJECTED_MARKERS = ("InterfaceError", "ProgrammingError")


def normalize_postgres_error(exc: Exception) -> ErrorDetail:
    name = type(exc).__name__
    text = str(exc)
    metadata = {"exception_type": name}

    if _named(name, _DUPLICATE_MARKERS) or "duplicate key value" in text:
        return conflict_error(
            "resource already exists", code=codes.ALREADY_EXISTS, metadata=metadata
        )
    if _named(name, _UNAVAILABLE_MARKERS) or "timeout" in text.lower():
        return dependency_error(
            "postgres unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            metadata=metadata,
        )
    if _named(name, _REJECTED_MARKERS):
        return dependency_error(
            "postgres request failed",
            code=codes.DEPENDENCY_FAILURE,
            retryable=False,
            metadata=metadata,
        )
    return internal_error(
        "unexpected postgres failure",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )


def _named(name: str, markers: tuple[str, ...]) -> bool:
    return any(marker in name for marker in markers)
