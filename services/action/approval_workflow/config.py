"""Pydantic settings for Approval Workflow behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from services.action.approval_workflow.component import SERVICE_COMPONENT_ID


class ApprovalSimilaritySettings(BaseModel):
    """Policy deciding which pending requests a bulk response also resolves."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    match_contact: bool = True
    window_hours: float | None = Field(default=24.0, gt=0)


class ApprovalWorkflowSettings(BaseModel):
    """Expiry, deferral, and bulk approval settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    approval_ttl_minutes: int = Field(default=60 * 24, gt=0)
    defer_minutes: int = Field(default=60, gt=0)
    enable_bulk_approval: bool = True
    similarity: ApprovalSimilaritySettings = Field(
        default_factory=ApprovalSimilaritySettings
    )


def resolve_approval_workflow_settings(
    settings: CrmSettings,
) -> ApprovalWorkflowSettings:
    """Resolve settings from ``components.service.approval_workflow``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=ApprovalWorkflowSettings,
    )
