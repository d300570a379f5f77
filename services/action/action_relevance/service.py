"""Authoritative in-process Python API for Action Relevance Validator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from packages.crm_shared.config import CrmSettings
from resources.adapters.litellm import LiteLlmAdapter
from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.action_relevance.domain import (
    ActionRelevanceRequest,
    ActionRelevanceResult,
    ComplianceViolation,
    ContactContext,
    ScheduledAction,
    ValidationAuditEntry,
)
from services.action.action_relevance.interfaces import (
    ContactContextProvider,
    ValidationAuditRepository,
)


class ActionRelevanceService(ABC):
    """Public API for relevance verdicts, approval requirement, and audit.

    Every method that depends on policy accepts an explicit ``settings``
    snapshot; when omitted the service's current configuration is used.
    """

    @abstractmethod
    async def validate_action_relevance(
        self,
        *,
        request: ActionRelevanceRequest,
        settings: ActionRelevanceSettings | None = None,
    ) -> ActionRelevanceResult:
        """Run the rule-based stage, then the semantic stage when inconclusive."""

    @abstractmethod
    async def validate_batch(
        self,
        *,
        requests: Sequence[ActionRelevanceRequest],
        settings: ActionRelevanceSettings | None = None,
    ) -> tuple[ActionRelevanceResult, ...]:
        """Validate independently; output order and length match input."""

    @abstractmethod
    async def is_action_still_relevant(
        self,
        *,
        action: ScheduledAction,
        contact_context: ContactContext | None = None,
        trace_id: str | None = None,
    ) -> bool:
        """Return a quick relevance answer for one action."""

    @abstractmethod
    async def evaluate_relevance_criteria(
        self,
        *,
        criteria: Mapping[str, Any],
        contact_context: ContactContext,
        trace_id: str | None = None,
        tenant_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> ActionRelevanceResult:
        """Evaluate declarative criteria against one contact snapshot.

        Like every validation entry point, the result is appended to the
        audit log when auditing is enabled.
        """

    @abstractmethod
    async def validate_with_llm(
        self,
        *,
        action: ScheduledAction,
        contact_context: ContactContext,
        overrides: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> ActionRelevanceResult:
        """Ask the remote model to judge relevance."""

    @abstractmethod
    def suggest_alternative_actions(
        self,
        *,
        original_action: ScheduledAction,
        contact_context: ContactContext,
        suggested_types: Sequence[str] = (),
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> tuple[ScheduledAction, ...]:
        """Return at least one alternative for a rejected action."""

    @abstractmethod
    async def requires_approval(
        self,
        *,
        action: ScheduledAction,
        relevance: ActionRelevanceResult,
        user_id: str,
        tenant_id: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> bool:
        """Dispatch over the effective override mode; errors require approval."""

    @abstractmethod
    async def llm_recommends_approval(
        self,
        *,
        action: ScheduledAction,
        relevance: ActionRelevanceResult,
        contact_context: ContactContext,
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> bool:
        """Ask the remote model whether approval is needed."""

    @abstractmethod
    async def get_validation_audit_log(
        self,
        *,
        contact_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        action_type: str | None = None,
    ) -> tuple[ValidationAuditEntry, ...]:
        """Return audit entries matching every supplied filter, newest first."""

    @abstractmethod
    async def record_compliance_violation(
        self, *, violation: ComplianceViolation
    ) -> ComplianceViolation:
        """Append one compliance violation."""

    @abstractmethod
    async def list_compliance_violations(
        self, *, tenant_id: str, limit: int = 100
    ) -> tuple[ComplianceViolation, ...]:
        """Return newest compliance violations for one tenant."""

    @abstractmethod
    def get_configuration(self) -> ActionRelevanceSettings:
        """Return the current settings snapshot."""

    @abstractmethod
    def update_configuration(
        self, *, settings: ActionRelevanceSettings
    ) -> ActionRelevanceSettings:
        """Replace the current settings snapshot and return it."""


def build_action_relevance_service(
    *,
    settings: CrmSettings,
    adapter: LiteLlmAdapter | None = None,
    contact_provider: ContactContextProvider | None = None,
    audit_repository: ValidationAuditRepository | None = None,
) -> ActionRelevanceService:
    """Build default Action Relevance Validator implementation."""
    from services.action.action_relevance.implementation import (
        DefaultActionRelevanceService,
    )

    return DefaultActionRelevanceService.from_settings(
        settings,
        adapter=adapter,
        contact_provider=contact_provider,
        audit_repository=audit_repository,
    )
