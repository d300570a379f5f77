"""Request/result contracts shared by every action orchestration service."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from packages.crm_shared.errors import ErrorDetail
from packages.crm_shared.ids import generate_ulid_str

DecisionPath = Literal["replay", "planned", "fallback"]


class MalformedRequestError(ValueError):
    """Raised when an inbound agent request is missing or has invalid fields."""

    def __init__(self, fields: tuple[str, ...]) -> None:
        super().__init__(f"malformed agent request: {', '.join(fields)}")
        self.fields = fields


class AgentRequest(BaseModel):
    """One agent-initiated action attempt, immutable once constructed."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    tenant_id: str = Field(min_length=1)
    organization_id: str | None = None
    user_id: str = Field(min_length=1)
    action_type: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    industry: str | None = None
    risk_band: str = Field(min_length=1)
    contact_id: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    user_overrides: dict[str, Any] = Field(default_factory=dict)
    trace_id: str = Field(default_factory=generate_ulid_str, min_length=1)

    @field_validator("organization_id", "industry", "contact_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value


class ValidationContext(BaseModel):
    """Context shared by replay and planned validation paths."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant_id: str
    organization_id: str | None = None
    user_id: str
    contact_id: str | None = None
    action_type: str
    channel: str
    risk_band: str
    trace_id: str
    user_overrides: dict[str, Any] = Field(default_factory=dict)
    parameters: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, request: AgentRequest) -> "ValidationContext":
        """Project one agent request into a validation context."""
        return cls(
            tenant_id=request.tenant_id,
            organization_id=request.organization_id,
            user_id=request.user_id,
            contact_id=request.contact_id,
            action_type=request.action_type,
            channel=request.channel,
            risk_band=request.risk_band,
            trace_id=request.trace_id,
            user_overrides=dict(request.user_overrides),
            parameters=dict(request.parameters),
        )


class ExecutionResult(BaseModel):
    """Outcome returned to the caller for one handled agent request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool
    message: str
    error: ErrorDetail | None = None
    trace_id: str = ""
    decision_path: DecisionPath | None = None
    override_required: bool = False
    approval_request_id: str | None = None
    alternative_actions: tuple[str, ...] = ()
    output: dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = 0.0


def parse_agent_request(payload: Mapping[str, Any]) -> AgentRequest:
    """Build an ``AgentRequest`` from an untrusted mapping.

    Raises ``MalformedRequestError`` naming every offending field.
    """
    if not isinstance(payload, Mapping):
        raise MalformedRequestError(("<root>",))
    try:
        return AgentRequest.model_validate(dict(payload))
    except ValidationError as exc:
        fields = sorted(
            {
                str(error["loc"][0]) if error["loc"] else "<root>"
                for error in exc.errors()
            }
        )
        raise MalformedRequestError(tuple(fields)) from None


def utc_now() -> datetime:
    """Return current UTC timestamp for action orchestration records."""
    return datetime.now(UTC)
