"""Per-task logging context for tenant and trace correlation.

The context lives in a ``ContextVar`` so concurrent agent requests handled
on one event loop never see each other's tenant or trace identifiers.
Stored values are always strings; ``None`` means "leave unset".
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("crm_log_context", default={})


def _merged(base: Mapping[str, str], values: Mapping[str, object]) -> dict[str, str]:
    merged = dict(base)
    merged.update({str(k): str(v) for k, v in values.items() if v is not None})
    return merged


def get_context() -> dict[str, str]:
    """Return a copy of the fields bound for the current task."""
    return dict(_CONTEXT.get())


def bind_context(**values: object) -> None:
    """Bind fields until the enclosing ``log_context`` exits (or forever)."""
    if values:
        _CONTEXT.set(_merged(_CONTEXT.get(), values))


def clear_context(*keys: str) -> None:
    """Drop the named fields, or every field when none are named."""
    if not keys:
        _CONTEXT.set({})
        return
    _CONTEXT.set({k: v for k, v in _CONTEXT.get().items() if k not in keys})


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[dict[str, str]]:
    """Bind ``values`` for the duration of the block and yield the result."""
    token = _CONTEXT.set(_merged(_CONTEXT.get(), values))
    try:
        yield dict(_CONTEXT.get())
    finally:
        _CONTEXT.reset(token)
