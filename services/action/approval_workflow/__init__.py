"""Approval Workflow Service package exports."""

from services.action.approval_workflow.component import MANIFEST
from services.action.approval_workflow.config import (
    ApprovalSimilaritySettings,
    ApprovalWorkflowSettings,
    resolve_approval_workflow_settings,
)
from services.action.approval_workflow.data.repository import (
    InMemoryApprovalRepository,
    PostgresApprovalRepository,
)
from services.action.approval_workflow.data.runtime import (
    ApprovalWorkflowPostgresRuntime,
)
from services.action.approval_workflow.domain import (
    ApprovalDecision,
    ApprovalResolution,
    ApprovalStatus,
    BulkApprovalResult,
    ExpirySweepResult,
    UserApprovalRequest,
    UserApprovalResponse,
)
from services.action.approval_workflow.implementation import (
    DefaultApprovalWorkflowService,
    similarity_policy,
)
from services.action.approval_workflow.interfaces import (
    ApprovalRepository,
    SimilarityPredicate,
)
from services.action.approval_workflow.service import (
    ApprovalWorkflowService,
    build_approval_workflow_service,
)

__all__ = [
    "ApprovalDecision",
    "ApprovalRepository",
    "ApprovalResolution",
    "ApprovalSimilaritySettings",
    "ApprovalStatus",
    "ApprovalWorkflowPostgresRuntime",
    "ApprovalWorkflowService",
    "ApprovalWorkflowSettings",
    "BulkApprovalResult",
    "DefaultApprovalWorkflowService",
    "ExpirySweepResult",
    "InMemoryApprovalRepository",
    "MANIFEST",
    "PostgresApprovalRepository",
    "SimilarityPredicate",
    "UserApprovalRequest",
    "UserApprovalResponse",
    "build_approval_workflow_service",
    "resolve_approval_workflow_settings",
    "similarity_policy",
]
