"""Protocol interfaces for approval request persistence."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from services.action.action_relevance.domain import ScheduledAction
from services.action.approval_workflow.domain import (
    ApprovalDecision,
    ApprovalStatus,
    UserApprovalRequest,
)

SimilarityPredicate = Callable[[UserApprovalRequest, UserApprovalRequest], bool]


class ApprovalRepository(Protocol):
    """Tenant-partitioned approval store with guarded one-way transitions."""

    async def insert_request(self, *, request: UserApprovalRequest) -> None:
        """Persist one new pending request."""

    async def get_request(self, *, request_id: str) -> UserApprovalRequest | None:
        """Return one request by id."""

    async def list_user_requests(
        self, *, user_id: str, status: ApprovalStatus | None
    ) -> tuple[UserApprovalRequest, ...]:
        """Return one user's requests ordered by request time."""

    async def transition(
        self,
        *,
        request_id: str,
        to_status: ApprovalStatus,
        resolved_at: datetime,
        resolution: ApprovalDecision | None,
        resolved_by: str | None,
        action: ScheduledAction | None = None,
    ) -> UserApprovalRequest | None:
        """Move a request out of ``pending``; return ``None`` if not pending."""

    async def list_overdue(self, *, now: datetime) -> tuple[UserApprovalRequest, ...]:
        """Return pending requests whose expiry has passed."""
