"""Authoritative in-process Python API for Validator Pipeline Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.crm_shared.config import CrmSettings
from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.action_relevance.service import ActionRelevanceService
from services.action.agent_planner.domain import PlannedExecution
from services.action.approval_workflow.service import ApprovalWorkflowService
from services.action.contracts import ValidationContext
from services.action.procedural_memory.domain import ReplayPlan
from services.action.validator_pipeline.config import ValidatorPipelineSettings
from services.action.validator_pipeline.domain import ValidationVerdict


class ValidatorPipelineService(ABC):
    """Public API validating replayed and freshly planned executions."""

    @abstractmethod
    async def validate_replay(
        self,
        *,
        plan: ReplayPlan,
        context: ValidationContext,
        settings: ValidatorPipelineSettings | None = None,
        relevance_settings: ActionRelevanceSettings | None = None,
        record_approval: bool = True,
    ) -> ValidationVerdict:
        """Validate one replayed procedure before it executes.

        With ``record_approval`` off an approval-gated replay is reported as
        override-required without persisting an approval request.
        """

    @abstractmethod
    async def validate_planned(
        self,
        *,
        plan: PlannedExecution,
        context: ValidationContext,
        settings: ValidatorPipelineSettings | None = None,
        relevance_settings: ActionRelevanceSettings | None = None,
    ) -> ValidationVerdict:
        """Validate one freshly planned execution before it executes."""


def build_validator_pipeline_service(
    *,
    settings: CrmSettings,
    relevance_service: ActionRelevanceService | None = None,
    approval_service: ApprovalWorkflowService | None = None,
) -> ValidatorPipelineService:
    """Build default Validator Pipeline Service implementation."""
    from services.action.validator_pipeline.implementation import (
        DefaultValidatorPipelineService,
    )

    return DefaultValidatorPipelineService.from_settings(
        settings,
        relevance_service=relevance_service,
        approval_service=approval_service,
    )
