"""Envelope model returned by every in-process service call."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.errors import ErrorDetail

from .meta import EnvelopeMeta
from .payload import Payload

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Metadata plus either a payload, errors, or both.

    An envelope is ``ok`` exactly when it carries no errors; a payload may
    still accompany a failure.
    """

    model_config = ConfigDict(frozen=True)

    metadata: EnvelopeMeta
    payload: Payload[T] | None = None
    errors: list[ErrorDetail] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    @property
    def error_codes(self) -> tuple[str, ...]:
        return tuple(error.code for error in self.errors)
