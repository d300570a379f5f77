"""Domain contracts for scheduled actions and relevance verdicts."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.ids import generate_ulid_str
from services.action.contracts import utc_now

ActionStatus = Literal[
    "scheduled", "validated", "suppressed", "pending_approval", "executed"
]
ValidationMethod = Literal[
    "RuleBased", "LLM", "RuleBased+LLM", "Error", "LLM-Error", "Skipped"
]
ViolationSeverity = Literal["low", "medium", "high", "critical"]


class UrgencyLevel(IntEnum):
    """Relative priority of a scheduled action."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


class OverrideMode(str, Enum):
    """Policy governing when a human must approve an action."""

    ALWAYS_ASK = "AlwaysAsk"
    NEVER_ASK = "NeverAsk"
    RISK_BASED = "RiskBased"
    LLM_DECISION = "LLMDecision"


class ScheduledAction(BaseModel):
    """Concrete action candidate subjected to relevance and risk checks."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_ulid_str)
    tenant_id: str | None = None
    action_type: str = Field(min_length=1)
    description: str = ""
    contact_id: str | None = None
    organization_id: str | None = None
    scheduled_by_agent: str = ""
    scheduled_at: datetime = Field(default_factory=utc_now)
    execute_at: datetime = Field(default_factory=utc_now)
    parameters: dict[str, Any] = Field(default_factory=dict)
    relevance_criteria: dict[str, Any] = Field(default_factory=dict)
    status: ActionStatus = "scheduled"
    priority: UrgencyLevel = UrgencyLevel.MEDIUM
    risk_band: str = "low"
    trace_id: str | None = None

    def alternative(
        self,
        *,
        action_type: str,
        description: str,
        trace_id: str,
        delay: timedelta = timedelta(hours=1),
    ) -> "ScheduledAction":
        """Return a fresh action of ``action_type`` aimed at the same contact."""
        return self.model_copy(
            update={
                "id": generate_ulid_str(),
                "action_type": action_type,
                "description": description,
                "scheduled_at": utc_now(),
                "execute_at": utc_now() + delay,
                "parameters": dict(self.parameters),
                "relevance_criteria": dict(self.relevance_criteria),
                "status": "scheduled",
                "trace_id": trace_id,
            }
        )


class ContactContext(BaseModel):
    """Snapshot of a contact's current situation used for relevance checks."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    contact_id: str | None = None
    organization_id: str | None = None
    last_interaction: datetime | None = None
    interaction_summary: str = ""
    additional_data: dict[str, Any] = Field(default_factory=dict)
    retrieved_at: datetime = Field(default_factory=utc_now)


class ActionRelevanceRequest(BaseModel):
    """One relevance validation request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: ScheduledAction
    current_context: ContactContext | None = None
    use_llm_validation: bool = True
    user_overrides: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    trace_id: str = Field(default_factory=generate_ulid_str)


class ActionRelevanceResult(BaseModel):
    """Verdict for one relevance validation call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_relevant: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    validation_method: ValidationMethod = "RuleBased"
    llm_reasoning: str | None = None
    recommended_action: str | None = None
    alternative_actions: tuple[str, ...] = ()
    failed_criteria: tuple[str, ...] = ()
    override_required: bool = False
    action_id: str = ""
    contact_id: str | None = None
    action_type: str = ""
    trace_id: str = ""
    checked_at: datetime = Field(default_factory=utc_now)
    checked_by: str = "ActionRelevanceValidator"


class ValidationAuditEntry(BaseModel):
    """Immutable audit record of one relevance validation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_ulid_str)
    tenant_id: str | None = None
    result: ActionRelevanceResult
    recorded_at: datetime = Field(default_factory=utc_now)


class ComplianceViolation(BaseModel):
    """Non-PII record of a rejected or policy-breaking action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_ulid_str)
    tenant_id: str = Field(min_length=1)
    violation_type: str = Field(min_length=1)
    agent_type: str = Field(min_length=1)
    action_type: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    severity: ViolationSeverity = "medium"
    occurred_at: datetime = Field(default_factory=utc_now)
