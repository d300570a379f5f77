from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Payload(BaseModel, Generic[T]):
    """Typed wrapper so an envelope can carry ``None`` as a real value."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: T
