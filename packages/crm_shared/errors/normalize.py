"""Fallback mapping from Python exceptions to ``ErrorDetail`` values."""

from __future__ import annotations

from typing import Callable

from . import codes
from .factories import (
    dependency_error,
    internal_error,
    not_found_error,
    policy_error,
    validation_error,
)
from .types import ErrorDetail

# First match wins; order matters where exception types overlap.
_MAPPINGS: tuple[tuple[type[Exception], Callable[..., ErrorDetail], str, str], ...] = (
    (ValueError, validation_error, codes.INVALID_ARGUMENT, "invalid argument"),
    (KeyError, not_found_error, codes.RESOURCE_NOT_FOUND, "resource not found"),
    (PermissionError, policy_error, codes.PERMISSION_DENIED, "permission denied"),
    (TimeoutError, dependency_error, codes.DEPENDENCY_TIMEOUT, "dependency timeout"),
    (
        ConnectionError,
        dependency_error,
        codes.DEPENDENCY_UNAVAILABLE,
        "dependency unavailable",
    ),
)


def exception_to_error(exc: Exception) -> ErrorDetail:
    """Map ``exc`` onto a shared error, tagging the exception type.

    Adapters translate the exceptions they know about first and hand the
    rest to this function.
    """
    metadata = {"exception_type": type(exc).__name__}
    for exc_type, factory, code, default_message in _MAPPINGS:
        if isinstance(exc, exc_type):
            return factory(str(exc) or default_message, code=code, metadata=metadata)
    return internal_error(
        str(exc) or "unexpected exception",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
