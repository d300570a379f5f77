"""Domain contracts for human approval requests and their resolution."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.ids import generate_ulid_str
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ScheduledAction,
)
from services.action.contracts import utc_now


class ApprovalStatus(str, Enum):
    """Lifecycle state of one approval request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalDecision(str, Enum):
    """Decision carried by one approval response."""

    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"
    DEFER = "defer"

    @property
    def resolved_status(self) -> ApprovalStatus:
        """Return the terminal status this decision transitions into."""
        if self is ApprovalDecision.REJECT:
            return ApprovalStatus.REJECTED
        return ApprovalStatus.APPROVED


class UserApprovalRequest(BaseModel):
    """Pending or resolved request for a human to approve one action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=generate_ulid_str)
    tenant_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    action: ScheduledAction
    relevance_result: ActionRelevanceResult
    reason: str = ""
    original_overrides: dict[str, Any] = Field(default_factory=dict)
    alternatives: tuple[ScheduledAction, ...] = ()
    trace_id: str = ""
    status: ApprovalStatus = ApprovalStatus.PENDING
    requested_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    resolved_at: datetime | None = None
    resolution: ApprovalDecision | None = None
    resolved_by: str | None = None

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` once the expiry timestamp has passed."""
        return self.status is ApprovalStatus.EXPIRED or self.expires_at <= now


class UserApprovalResponse(BaseModel):
    """One user's answer to an approval request; consumed once."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    request_id: str = Field(min_length=1)
    decision: ApprovalDecision
    user_id: str = Field(min_length=1)
    reason: str = ""
    apply_to_similar_actions: bool = False
    suggested_modifications: dict[str, Any] = Field(default_factory=dict)
    responded_at: datetime = Field(default_factory=utc_now)


class ApprovalResolution(BaseModel):
    """Outcome of processing one approval response."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    request: UserApprovalRequest
    action: ScheduledAction | None = None
    bulk_count: int = 0


class BulkApprovalResult(BaseModel):
    """Number of similar pending requests resolved by one bulk response."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    affected_count: int = Field(default=0, ge=0)
    request_ids: tuple[str, ...] = ()


class ExpirySweepResult(BaseModel):
    """Requests transitioned to ``expired`` by one sweep."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    expired_count: int = Field(default=0, ge=0)
    request_ids: tuple[str, ...] = ()
