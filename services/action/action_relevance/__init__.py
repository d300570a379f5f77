"""Action Relevance Validator package exports."""

from services.action.action_relevance.component import MANIFEST
from services.action.action_relevance.config import (
    ActionRelevanceSettings,
    resolve_action_relevance_settings,
)
from services.action.action_relevance.data.repository import (
    InMemoryValidationAuditRepository,
    PostgresValidationAuditRepository,
)
from services.action.action_relevance.data.runtime import (
    ActionRelevancePostgresRuntime,
)
from services.action.action_relevance.domain import (
    ActionRelevanceRequest,
    ActionRelevanceResult,
    ComplianceViolation,
    ContactContext,
    OverrideMode,
    ScheduledAction,
    UrgencyLevel,
    ValidationAuditEntry,
    ValidationMethod,
)
from services.action.action_relevance.implementation import (
    DefaultActionRelevanceService,
)
from services.action.action_relevance.interfaces import (
    ContactContextProvider,
    ValidationAuditRepository,
)
from services.action.action_relevance.service import (
    ActionRelevanceService,
    build_action_relevance_service,
)

__all__ = [
    "ActionRelevancePostgresRuntime",
    "ActionRelevanceRequest",
    "ActionRelevanceResult",
    "ActionRelevanceService",
    "ActionRelevanceSettings",
    "ComplianceViolation",
    "ContactContext",
    "ContactContextProvider",
    "DefaultActionRelevanceService",
    "InMemoryValidationAuditRepository",
    "MANIFEST",
    "OverrideMode",
    "PostgresValidationAuditRepository",
    "ScheduledAction",
    "UrgencyLevel",
    "ValidationAuditEntry",
    "ValidationAuditRepository",
    "ValidationMethod",
    "build_action_relevance_service",
    "resolve_action_relevance_settings",
]
