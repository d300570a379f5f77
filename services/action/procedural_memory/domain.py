"""Domain contracts for compiled procedures, replay plans, and traces."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.ids import generate_ulid_str
from services.action.contracts import AgentRequest, build_context_fingerprint, utc_now

ProcedureRing = Literal["canary", "ga"]
MatchTier = Literal["organization", "industry", "tenant"]
TraceOutcome = Literal["planned", "planner_failed", "overloaded"]


class ProcedureStep(BaseModel):
    """One tool invocation within a compiled procedure or plan."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool: str = Field(min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class CompiledProcedure(BaseModel):
    """Versioned, reusable execution plan scoped to one tenant partition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_ulid_str)
    tenant_id: str = Field(min_length=1)
    organization_id: str | None = None
    industry: str | None = None
    action_type: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    version: int = Field(default=1, ge=1)
    steps: tuple[ProcedureStep, ...] = ()
    parameters: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    ring: ProcedureRing = "ga"
    preconditions: tuple[str, ...] = ()
    created_at: datetime = Field(default_factory=utc_now)


class ReplayPlan(BaseModel):
    """Read-only projection of the procedure selected for one request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    procedure_id: str
    tenant_id: str
    action_type: str
    channel: str
    version: int
    steps: tuple[ProcedureStep, ...]
    parameters: dict[str, Any] = Field(default_factory=dict)
    ring: ProcedureRing
    preconditions: tuple[str, ...] = ()
    match_tier: MatchTier
    requires_validation: bool = True

    @classmethod
    def from_procedure(
        cls, procedure: CompiledProcedure, *, match_tier: MatchTier
    ) -> "ReplayPlan":
        return cls(
            procedure_id=procedure.id,
            tenant_id=procedure.tenant_id,
            action_type=procedure.action_type,
            channel=procedure.channel,
            version=procedure.version,
            steps=procedure.steps,
            parameters=dict(procedure.parameters),
            ring=procedure.ring,
            preconditions=procedure.preconditions,
            match_tier=match_tier,
        )


class ProcedureLookup(BaseModel):
    """Lookup key for one replay decision."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant_id: str = Field(min_length=1)
    organization_id: str | None = None
    action_type: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    industry: str | None = None
    fingerprint: str = ""

    @classmethod
    def from_request(cls, request: AgentRequest) -> "ProcedureLookup":
        return cls(
            tenant_id=request.tenant_id,
            organization_id=request.organization_id,
            action_type=request.action_type,
            channel=request.channel,
            industry=request.industry,
            fingerprint=build_context_fingerprint(request),
        )


class ProcedureTrace(BaseModel):
    """Write-once record of one planning attempt kept for offline learning."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_ulid_str)
    trace_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    organization_id: str | None = None
    action_type: str = Field(min_length=1)
    channel: str = Field(min_length=1)
    fingerprint: str
    redacted_inputs: dict[str, Any] = Field(default_factory=dict)
    outcome: TraceOutcome
    step_count: int = Field(default=0, ge=0)
    error_code: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class DuplicateTraceError(ValueError):
    """Raised when a trace id has already been captured."""


class ProcedureVersionConflictError(RuntimeError):
    """Raised when a concurrent writer claimed the same procedure version."""
