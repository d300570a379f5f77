"""Procedural Memory persistence repository implementations."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError

from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.action.procedural_memory.data.schema import procedure_traces, procedures
from services.action.procedural_memory.domain import (
    CompiledProcedure,
    DuplicateTraceError,
    ProcedureStep,
    ProcedureTrace,
    ProcedureVersionConflictError,
)
from services.action.procedural_memory.interfaces import ProcedureRepository


class InMemoryProcedureRepository(ProcedureRepository):
    """Append-only in-memory repository for procedures and traces."""

    def __init__(self) -> None:
        self._procedures: list[CompiledProcedure] = []
        self._traces: dict[str, ProcedureTrace] = {}
        self._lock = asyncio.Lock()

    async def list_enabled_procedures(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        rows = await self.list_procedure_versions(
            tenant_id=tenant_id, action_type=action_type, channel=channel
        )
        return tuple(row for row in rows if row.enabled)

    async def list_procedure_versions(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        rows = [
            row
            for row in self._procedures
            if row.tenant_id == tenant_id
            and row.action_type == action_type
            and row.channel == channel
        ]
        return tuple(sorted(rows, key=lambda row: row.version, reverse=True))

    async def head_version(
        self,
        *,
        tenant_id: str,
        action_type: str,
        channel: str,
        organization_id: str | None,
        industry: str | None,
    ) -> int:
        versions = [
            row.version
            for row in self._procedures
            if _same_scope(
                row,
                tenant_id=tenant_id,
                action_type=action_type,
                channel=channel,
                organization_id=organization_id,
                industry=industry,
            )
        ]
        return max(versions, default=0)

    async def insert_procedure(self, *, procedure: CompiledProcedure) -> None:
        async with self._lock:
            for row in self._procedures:
                if row.id == procedure.id:
                    raise ProcedureVersionConflictError(
                        f"procedure id already stored: {procedure.id}"
                    )
                if row.version == procedure.version and _same_scope(
                    row,
                    tenant_id=procedure.tenant_id,
                    action_type=procedure.action_type,
                    channel=procedure.channel,
                    organization_id=procedure.organization_id,
                    industry=procedure.industry,
                ):
                    raise ProcedureVersionConflictError(
                        f"procedure version already stored: {procedure.version}"
                    )
            self._procedures.append(procedure)

    async def insert_trace(self, *, trace: ProcedureTrace) -> None:
        async with self._lock:
            if trace.id in self._traces:
                raise DuplicateTraceError(f"trace already captured: {trace.id}")
            self._traces[trace.id] = trace

    async def list_traces(
        self, *, tenant_id: str, limit: int
    ) -> tuple[ProcedureTrace, ...]:
        rows = [row for row in self._traces.values() if row.tenant_id == tenant_id]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return tuple(rows[:limit])


class PostgresProcedureRepository(ProcedureRepository):
    """SQL repository over Procedural Memory-owned schema tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    async def list_enabled_procedures(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        async with self._sessions.session() as session:
            result = await session.execute(
                select(procedures)
                .where(
                    procedures.c.tenant_id == tenant_id,
                    procedures.c.action_type == action_type,
                    procedures.c.channel == channel,
                    procedures.c.enabled.is_(True),
                )
                .order_by(desc(procedures.c.version))
            )
            return tuple(_to_procedure(row) for row in result.mappings().all())

    async def list_procedure_versions(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        async with self._sessions.session() as session:
            result = await session.execute(
                select(procedures)
                .where(
                    procedures.c.tenant_id == tenant_id,
                    procedures.c.action_type == action_type,
                    procedures.c.channel == channel,
                )
                .order_by(desc(procedures.c.version))
            )
            return tuple(_to_procedure(row) for row in result.mappings().all())

    async def head_version(
        self,
        *,
        tenant_id: str,
        action_type: str,
        channel: str,
        organization_id: str | None,
        industry: str | None,
    ) -> int:
        async with self._sessions.session() as session:
            result = await session.execute(
                select(func.max(procedures.c.version)).where(
                    procedures.c.tenant_id == tenant_id,
                    procedures.c.action_type == action_type,
                    procedures.c.channel == channel,
                    procedures.c.organization_id.is_not_distinct_from(organization_id),
                    procedures.c.industry.is_not_distinct_from(industry),
                )
            )
            head = result.scalar_one_or_none()
            return 0 if head is None else int(head)

    async def insert_procedure(self, *, procedure: CompiledProcedure) -> None:
        try:
            async with self._sessions.session() as session:
                await session.execute(
                    procedures.insert().values(
                        id=procedure.id,
                        tenant_id=procedure.tenant_id,
                        organization_id=procedure.organization_id,
                        industry=procedure.industry,
                        action_type=procedure.action_type,
                        channel=procedure.channel,
                        version=procedure.version,
                        steps=[step.model_dump(mode="json") for step in procedure.steps],
                        parameters=procedure.parameters,
                        enabled=procedure.enabled,
                        ring=procedure.ring,
                        preconditions=list(procedure.preconditions),
                        created_at=procedure.created_at,
                    )
                )
        except IntegrityError as exc:
            raise ProcedureVersionConflictError(
                f"procedure version already stored: {procedure.version}"
            ) from exc

    async def insert_trace(self, *, trace: ProcedureTrace) -> None:
        try:
            async with self._sessions.session() as session:
                await session.execute(
                    procedure_traces.insert().values(
                        id=trace.id,
                        trace_id=trace.trace_id,
                        tenant_id=trace.tenant_id,
                        organization_id=trace.organization_id,
                        action_type=trace.action_type,
                        channel=trace.channel,
                        fingerprint=trace.fingerprint,
                        redacted_inputs=trace.redacted_inputs,
                        outcome=trace.outcome,
                        step_count=trace.step_count,
                        error_code=trace.error_code,
                        created_at=trace.created_at,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateTraceError(f"trace already captured: {trace.id}") from exc

    async def list_traces(
        self, *, tenant_id: str, limit: int
    ) -> tuple[ProcedureTrace, ...]:
        async with self._sessions.session() as session:
            result = await session.execute(
                select(procedure_traces)
                .where(procedure_traces.c.tenant_id == tenant_id)
                .order_by(desc(procedure_traces.c.created_at))
                .limit(limit)
            )
            return tuple(_to_trace(row) for row in result.mappings().all())


def _same_scope(
    row: CompiledProcedure,
    *,
    tenant_id: str,
    action_type: str,
    channel: str,
    organization_id: str | None,
    industry: str | None,
) -> bool:
    return (
        row.tenant_id == tenant_id
        and row.action_type == action_type
        and row.channel == channel
        and row.organization_id == organization_id
        and row.industry == industry
    )


def _to_procedure(row: Mapping[str, Any]) -> CompiledProcedure:
    return CompiledProcedure(
        id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        organization_id=row["organization_id"],
        industry=row["industry"],
        action_type=str(row["action_type"]),
        channel=str(row["channel"]),
        version=int(row["version"]),
        steps=tuple(ProcedureStep.model_validate(step) for step in row["steps"]),
        parameters=dict(row["parameters"] or {}),
        enabled=bool(row["enabled"]),
        ring=row["ring"],
        preconditions=tuple(row["preconditions"] or ()),
        created_at=row["created_at"],
    )


def _to_trace(row: Mapping[str, Any]) -> ProcedureTrace:
    return ProcedureTrace(
        id=str(row["id"]),
        trace_id=str(row["trace_id"]),
        tenant_id=str(row["tenant_id"]),
        organization_id=row["organization_id"],
        action_type=str(row["action_type"]),
        channel=str(row["channel"]),
        fingerprint=str(row["fingerprint"]),
        redacted_inputs=dict(row["redacted_inputs"] or {}),
        outcome=row["outcome"],
        step_count=int(row["step_count"]),
        error_code=row["error_code"],
        created_at=row["created_at"],
    )
