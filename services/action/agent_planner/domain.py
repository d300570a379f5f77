"""Domain contracts for context retrieval and planned executions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.errors import ErrorDetail
from services.action.contracts import AgentRequest, ExecutionResult
from services.action.procedural_memory.domain import ProcedureStep
from services.action.procedural_memory.interfaces import ProcedureExecutor


class RetrievalQuery(BaseModel):
    """Scope and hints used to fetch planning context for one request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tenant_id: str
    organization_id: str | None = None
    user_id: str
    contact_id: str | None = None
    action_type: str
    channel: str
    industry: str | None = None
    risk_band: str
    hints: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_request(cls, request: AgentRequest) -> "RetrievalQuery":
        """Project one agent request into a retrieval query."""
        return cls(
            tenant_id=request.tenant_id,
            organization_id=request.organization_id,
            user_id=request.user_id,
            contact_id=request.contact_id,
            action_type=request.action_type,
            channel=request.channel,
            industry=request.industry,
            risk_band=request.risk_band,
            hints=dict(request.parameters),
        )


class ContextSnippet(BaseModel):
    """One redacted context fragment offered to the planner."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: str
    ref_id: str
    redacted_text: str


class RetrievedContext(BaseModel):
    """Rolling summary, snippets, and policy directives for one request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rolling_summary: str = ""
    snippets: tuple[ContextSnippet, ...] = ()
    policy_directives: tuple[str, ...] = ()


class RemotePlan(BaseModel):
    """Tool steps and confidence proposed by the remote planner."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    steps: tuple[ProcedureStep, ...]
    confidence: float = Field(ge=0.0, le=1.0)


class PlanParseError(ValueError):
    """Raised when a planner reply cannot be decoded into a plan."""


@dataclass(frozen=True)
class PlannedExecution:
    """Deferred execution wrapped around remotely proposed tool steps.

    A failed plan carries ``error`` and no steps; executing it returns a
    failed result without touching the executor.
    """

    trace_id: str
    request: AgentRequest
    steps: tuple[ProcedureStep, ...] = ()
    confidence: float = 0.0
    error: ErrorDetail | None = None
    executor: ProcedureExecutor | None = field(default=None, repr=False)

    @property
    def failed(self) -> bool:
        """Return ``True`` when planning did not produce a usable plan."""
        return self.error is not None

    async def execute(self) -> ExecutionResult:
        """Run the proposed steps through the bound procedure executor."""
        if self.error is not None:
            return ExecutionResult(
                success=False,
                message=self.error.message,
                error=self.error,
                trace_id=self.trace_id,
            )
        if self.executor is None:
            raise RuntimeError("planned execution has no executor bound")
        return await self.executor.execute(
            request=self.request, steps=self.steps, trace_id=self.trace_id
        )
