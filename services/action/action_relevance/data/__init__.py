"""Action Relevance data layer exports."""

from services.action.action_relevance.data.repository import (
    InMemoryValidationAuditRepository,
    PostgresValidationAuditRepository,
)
from services.action.action_relevance.data.runtime import (
    ActionRelevancePostgresRuntime,
)
from services.action.action_relevance.data.schema import (
    compliance_violations,
    metadata,
    validation_audit,
)

__all__ = [
    "ActionRelevancePostgresRuntime",
    "InMemoryValidationAuditRepository",
    "PostgresValidationAuditRepository",
    "compliance_violations",
    "metadata",
    "validation_audit",
]
