"""Authoritative in-process Python API for Approval Workflow Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.envelope import Envelope, EnvelopeMeta
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ScheduledAction,
)
from services.action.approval_workflow.domain import (
    ApprovalResolution,
    BulkApprovalResult,
    ExpirySweepResult,
    UserApprovalRequest,
    UserApprovalResponse,
)
from services.action.approval_workflow.interfaces import (
    ApprovalRepository,
    SimilarityPredicate,
)


class ApprovalWorkflowService(ABC):
    """Public API for the human approval request lifecycle."""

    @abstractmethod
    async def create_approval_request(
        self,
        *,
        meta: EnvelopeMeta,
        action: ScheduledAction,
        relevance_result: ActionRelevanceResult,
        user_id: str,
        reason: str,
        overrides: dict[str, Any] | None = None,
        tenant_id: str | None = None,
        alternatives: tuple[ScheduledAction, ...] = (),
    ) -> Envelope[UserApprovalRequest]:
        """Persist one pending request that expires after the configured TTL."""

    @abstractmethod
    async def process_approval_response(
        self, *, meta: EnvelopeMeta, response: UserApprovalResponse
    ) -> Envelope[ApprovalResolution]:
        """Resolve one pending request and return the resulting action."""

    @abstractmethod
    async def apply_bulk_approval(
        self, *, meta: EnvelopeMeta, response: UserApprovalResponse, user_id: str
    ) -> Envelope[BulkApprovalResult]:
        """Apply one decision to the user's other similar pending requests."""

    @abstractmethod
    async def get_pending_approvals(
        self, *, meta: EnvelopeMeta, user_id: str, include_expired: bool = False
    ) -> Envelope[tuple[UserApprovalRequest, ...]]:
        """Return one user's pending requests ordered by request time."""

    @abstractmethod
    async def expire_stale_approvals(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[ExpirySweepResult]:
        """Transition every overdue pending request to ``expired``."""


def build_approval_workflow_service(
    *,
    settings: CrmSettings,
    repository: ApprovalRepository | None = None,
    similarity: SimilarityPredicate | None = None,
) -> ApprovalWorkflowService:
    """Build default Approval Workflow Service implementation."""
    from services.action.approval_workflow.implementation import (
        DefaultApprovalWorkflowService,
    )

    return DefaultApprovalWorkflowService.from_settings(
        settings, repository=repository, similarity=similarity
    )
