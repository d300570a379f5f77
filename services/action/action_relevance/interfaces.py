"""Protocol interfaces for contact context lookup and audit persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from services.action.action_relevance.domain import (
    ComplianceViolation,
    ContactContext,
    ValidationAuditEntry,
)


class ContactContextProvider(Protocol):
    """External collaborator returning a fresh contact snapshot."""

    async def get_contact_context(
        self,
        *,
        contact_id: str,
        organization_id: str | None,
        agent_id: str | None,
    ) -> ContactContext:
        """Return the current context for one contact."""


class ValidationAuditRepository(Protocol):
    """Append-only store for validation audit entries and violations."""

    async def append_audit(self, *, entry: ValidationAuditEntry) -> None:
        """Persist one audit entry."""

    async def list_audit(
        self,
        *,
        contact_id: str | None,
        start: datetime | None,
        end: datetime | None,
        action_type: str | None,
    ) -> tuple[ValidationAuditEntry, ...]:
        """Return matching audit entries, newest first."""

    async def append_violation(self, *, violation: ComplianceViolation) -> None:
        """Persist one compliance violation."""

    async def list_violations(
        self, *, tenant_id: str, limit: int
    ) -> tuple[ComplianceViolation, ...]:
        """Return newest violations for one tenant."""
