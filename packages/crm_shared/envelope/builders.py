"""Shorthand for the two envelope shapes services return."""

from __future__ import annotations

from typing import Iterable, TypeVar

from packages.crm_shared.errors import ErrorDetail

from .envelope import Envelope
from .meta import EnvelopeMeta
from .payload import Payload

T = TypeVar("T")


def success(*, meta: EnvelopeMeta, payload: T) -> Envelope[T]:
    return Envelope[T](metadata=meta, payload=Payload[T](value=payload))


def failure(
    *,
    meta: EnvelopeMeta,
    errors: Iterable[ErrorDetail],
    payload: T | None = None,
) -> Envelope[T]:
    """Errors, optionally with the payload they concern.

    Approval responses use the payload slot to return a request that turned
    out to be expired, or what a step had already done before it failed.
    """
    wrapped = None if payload is None else Payload[T](value=payload)
    return Envelope[T](metadata=meta, payload=wrapped, errors=list(errors))
