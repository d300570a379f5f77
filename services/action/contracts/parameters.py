"""Typed accessors over loosely-typed request parameter and override maps.

Keys are matched case-insensitively. A present value of the wrong type raises
``ParameterTypeError`` instead of being coerced.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any


class ParameterTypeError(ValueError):
    """Raised when a parameter is present but has an unexpected type."""

    def __init__(self, key: str, expected: str) -> None:
        super().__init__(f"parameter '{key}' must be {expected}")
        self.key = key


_MISSING = object()


def _lookup(values: Mapping[str, Any], key: str) -> Any:
    if key in values:
        return values[key]
    lowered = key.lower()
    for candidate, value in values.items():
        if candidate.lower() == lowered:
            return value
    return _MISSING


def parameter_str(values: Mapping[str, Any], key: str) -> str | None:
    """Return a stripped string parameter, or ``None`` when absent/blank."""
    value = _lookup(values, key)
    if value is _MISSING or value is None:
        return None
    if not isinstance(value, str):
        raise ParameterTypeError(key, "a string")
    stripped = value.strip()
    return stripped or None


def parameter_float(values: Mapping[str, Any], key: str) -> float | None:
    """Return a numeric parameter as ``float``; booleans are rejected."""
    value = _lookup(values, key)
    if value is _MISSING or value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParameterTypeError(key, "a number")
    return float(value)


def parameter_datetime(values: Mapping[str, Any], key: str) -> datetime | None:
    """Return a UTC datetime from a ``datetime`` or ISO-8601 string value."""
    value = _lookup(values, key)
    if value is _MISSING or value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ParameterTypeError(key, "an ISO-8601 timestamp") from None
    if not isinstance(value, datetime):
        raise ParameterTypeError(key, "a timestamp")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parameter_tags(values: Mapping[str, Any], key: str = "tags") -> tuple[str, ...]:
    """Return tags from a list of strings or a comma-separated string."""
    value = _lookup(values, key)
    if value is _MISSING or value is None:
        return ()
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ParameterTypeError(key, "a list of strings")
    tags: list[str] = []
    for item in items:
        if not isinstance(item, str):
            raise ParameterTypeError(key, "a list of strings")
        if item.strip():
            tags.append(item.strip())
    return tuple(tags)


def override_flag(overrides: Mapping[str, Any], key: str) -> bool:
    """Return ``True`` only for an explicit boolean or ``"true"`` override."""
    value = _lookup(overrides, key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def override_text(overrides: Mapping[str, Any], key: str) -> str | None:
    """Return a textual override such as ``overrideMode``."""
    value = _lookup(overrides, key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
