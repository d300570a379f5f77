"""Action Relevance audit repository implementations."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import desc, func, select

from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.action.action_relevance.data.schema import (
    compliance_violations,
    validation_audit,
)
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ComplianceViolation,
    ValidationAuditEntry,
)
from services.action.action_relevance.interfaces import ValidationAuditRepository


class InMemoryValidationAuditRepository(ValidationAuditRepository):
    """Bounded in-memory audit log; oldest entries are dropped past capacity."""

    def __init__(self, *, max_entries: int = 10000) -> None:
        self._entries: deque[ValidationAuditEntry] = deque(maxlen=max_entries)
        self._violations: list[ComplianceViolation] = []

    async def append_audit(self, *, entry: ValidationAuditEntry) -> None:
        self._entries.append(entry)

    async def list_audit(
        self,
        *,
        contact_id: str | None,
        start: datetime | None,
        end: datetime | None,
        action_type: str | None,
    ) -> tuple[ValidationAuditEntry, ...]:
        return _filter_entries(
            self._entries,
            contact_id=contact_id,
            start=start,
            end=end,
            action_type=action_type,
        )

    async def append_violation(self, *, violation: ComplianceViolation) -> None:
        self._violations.append(violation)

    async def list_violations(
        self, *, tenant_id: str, limit: int
    ) -> tuple[ComplianceViolation, ...]:
        rows = [row for row in self._violations if row.tenant_id == tenant_id]
        rows.sort(key=lambda row: row.occurred_at, reverse=True)
        return tuple(rows[:limit])


class PostgresValidationAuditRepository(ValidationAuditRepository):
    """SQL repository over Action Relevance-owned schema tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    async def append_audit(self, *, entry: ValidationAuditEntry) -> None:
        result = entry.result
        async with self._sessions.session() as session:
            await session.execute(
                validation_audit.insert().values(
                    id=entry.id,
                    tenant_id=entry.tenant_id,
                    action_id=result.action_id,
                    contact_id=result.contact_id,
                    action_type=result.action_type,
                    trace_id=result.trace_id,
                    is_relevant=result.is_relevant,
                    confidence=result.confidence,
                    validation_method=result.validation_method,
                    reason=result.reason,
                    result_json=result.model_dump(mode="json"),
                    checked_at=result.checked_at,
                    recorded_at=entry.recorded_at,
                )
            )

    async def list_audit(
        self,
        *,
        contact_id: str | None,
        start: datetime | None,
        end: datetime | None,
        action_type: str | None,
    ) -> tuple[ValidationAuditEntry, ...]:
        stmt = select(validation_audit)
        if contact_id is not None:
            stmt = stmt.where(validation_audit.c.contact_id == contact_id)
        if start is not None:
            stmt = stmt.where(validation_audit.c.checked_at >= start)
        if end is not None:
            stmt = stmt.where(validation_audit.c.checked_at <= end)
        if action_type:
            stmt = stmt.where(
                func.lower(validation_audit.c.action_type) == action_type.lower()
            )
        stmt = stmt.order_by(desc(validation_audit.c.checked_at))
        async with self._sessions.session() as session:
            rows = (await session.execute(stmt)).mappings().all()
        return tuple(
            ValidationAuditEntry(
                id=str(row["id"]),
                tenant_id=row["tenant_id"],
                result=ActionRelevanceResult.model_validate(row["result_json"]),
                recorded_at=row["recorded_at"],
            )
            for row in rows
        )

    async def append_violation(self, *, violation: ComplianceViolation) -> None:
        async with self._sessions.session() as session:
            await session.execute(
                compliance_violations.insert().values(
                    **violation.model_dump(mode="python")
                )
            )

    async def list_violations(
        self, *, tenant_id: str, limit: int
    ) -> tuple[ComplianceViolation, ...]:
        async with self._sessions.session() as session:
            rows = (
                (
                    await session.execute(
                        select(compliance_violations)
                        .where(compliance_violations.c.tenant_id == tenant_id)
                        .order_by(desc(compliance_violations.c.occurred_at))
                        .limit(limit)
                    )
                )
                .mappings()
                .all()
            )
        return tuple(ComplianceViolation.model_validate(dict(row)) for row in rows)


def _filter_entries(
    entries: Iterable[ValidationAuditEntry],
    *,
    contact_id: str | None,
    start: datetime | None,
    end: datetime | None,
    action_type: str | None,
) -> tuple[ValidationAuditEntry, ...]:
    matched = []
    for entry in entries:
        result = entry.result
        if contact_id is not None and result.contact_id != contact_id:
            continue
        if start is not None and result.checked_at < start:
            continue
        if end is not None and result.checked_at > end:
            continue
        if action_type and result.action_type.lower() != action_type.lower():
            continue
        matched.append(entry)
    matched.sort(key=lambda entry: entry.result.checked_at, reverse=True)
    return tuple(matched)
