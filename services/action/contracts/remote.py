"""Remote model profile selection and adapter failure mapping."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict

from packages.crm_shared.errors import (
    ErrorDetail,
    codes,
    dependency_error,
    internal_error,
)
from resources.adapters.litellm import (
    AdapterDependencyError,
    AdapterError,
    AdapterOverloadedError,
    AdapterRequestError,
)


class ModelProfileSettings(BaseModel):
    """Provider/model pair used for one class of remote model calls."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: str = "openai"
    model: str = "gpt-4o-mini"


def adapter_error_to_detail(
    exc: AdapterError,
    *,
    permanent_code: str,
    metadata: dict[str, str] | None = None,
) -> ErrorDetail:
    """Map one adapter failure into a shared error detail.

    Exhausted rate limiting is ``SERVICE_OVERLOADED``; other transient
    failures are ``DEPENDENCY_FAILURE``; permanent and internal failures use
    ``permanent_code``.
    """
    merged = {"adapter": "adapter_litellm", **(metadata or {})}
    if isinstance(exc, AdapterOverloadedError):
        merged["attempts"] = str(exc.attempts)
        return dependency_error(
            str(exc) or "remote model overloaded",
            code=codes.SERVICE_OVERLOADED,
            metadata=merged,
        )
    if isinstance(exc, AdapterDependencyError):
        return dependency_error(
            str(exc) or "remote model unavailable",
            code=codes.DEPENDENCY_FAILURE,
            metadata=merged,
        )
    if isinstance(exc, AdapterRequestError):
        return dependency_error(
            str(exc) or "remote model rejected request",
            code=permanent_code,
            retryable=False,
            metadata=merged,
        )
    return internal_error(
        str(exc) or "remote model adapter failure",
        code=permanent_code,
        metadata=merged,
    )


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object in a model reply.

    Tolerates surrounding prose and fenced code blocks. Raises ``ValueError``
    when no object can be decoded.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        raise ValueError("model reply contains no JSON object")
    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ValueError(f"model reply is not valid JSON: {exc.msg}") from None
    if not isinstance(parsed, dict):
        raise ValueError("model reply JSON is not an object")
    return parsed
