"""Transport-agnostic LiteLLM adapter contract and DTOs."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict


class AdapterError(Exception):
    """Base exception for adapter-level failures."""


class AdapterDependencyError(AdapterError):
    """Transient dependency failure (network, upstream 5xx, timeout)."""


class AdapterRateLimitError(AdapterDependencyError):
    """Upstream rejected one attempt because of rate limiting."""


class AdapterOverloadedError(AdapterDependencyError):
    """Every bounded attempt was rate limited; upstream is overloaded."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class AdapterRequestError(AdapterError):
    """Permanent upstream rejection (bad request, auth, permission, not found)."""


class AdapterInternalError(AdapterError):
    """Internal adapter failure (malformed response, configuration bug)."""


class AdapterChatResult(BaseModel):
    """Adapter response payload for one chat completion."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    text: str
    provider: str
    model: str
    attempts: int = 1


class AdapterHealthResult(BaseModel):
    """Adapter readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    adapter_ready: bool
    detail: str


class LiteLlmAdapter(Protocol):
    """Protocol for LiteLLM-backed chat operations."""

    async def chat(
        self,
        *,
        provider: str,
        model: str,
        prompt: str,
        system_prompt: str | None = None,
    ) -> AdapterChatResult:
        """Generate one chat completion under the bounded retry policy."""

    def health(self) -> AdapterHealthResult:
        """Return adapter health state."""
