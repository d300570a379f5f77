"""Approval Workflow data layer exports."""

from services.action.approval_workflow.data.repository import (
    InMemoryApprovalRepository,
    PostgresApprovalRepository,
)
from services.action.approval_workflow.data.runtime import (
    ApprovalWorkflowPostgresRuntime,
)
from services.action.approval_workflow.data.schema import approval_requests, metadata

__all__ = [
    "ApprovalWorkflowPostgresRuntime",
    "InMemoryApprovalRepository",
    "PostgresApprovalRepository",
    "approval_requests",
    "metadata",
]
