"""Domain contracts for validation verdicts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from packages.crm_shared.errors import ErrorDetail
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ScheduledAction,
)
from services.action.approval_workflow.domain import UserApprovalRequest

ValidationStage = Literal[
    "privacy", "planner", "risk", "relevance", "approval", "passed"
]


class ValidationVerdict(BaseModel):
    """Outcome of running one candidate plan through every stage.

    ``stage`` names the stage that decided the verdict. A verdict that
    requires an override or approval is never ``allowed``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool
    override_required: bool = False
    reason: str | None = None
    stage: ValidationStage = "passed"
    relevance: ActionRelevanceResult | None = None
    approval_request: UserApprovalRequest | None = None
    alternatives: tuple[ScheduledAction, ...] = ()
    error: ErrorDetail | None = None

    @model_validator(mode="after")
    def _approval_blocks_execution(self) -> "ValidationVerdict":
        if self.allowed and (
            self.override_required or self.approval_request is not None
        ):
            raise ValueError("a verdict requiring approval cannot be allowed")
        return self

    @property
    def approval_required(self) -> bool:
        """Return ``True`` when execution waits on a human decision."""
        return self.override_required
