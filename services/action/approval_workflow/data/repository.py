"""Approval request repository implementations."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import select

from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ScheduledAction,
)
from services.action.approval_workflow.data.schema import approval_requests
from services.action.approval_workflow.domain import (
    ApprovalDecision,
    ApprovalStatus,
    UserApprovalRequest,
)
from services.action.approval_workflow.interfaces import ApprovalRepository


class InMemoryApprovalRepository(ApprovalRepository):
    """Process-local approval store guarded by one lock."""

    def __init__(self) -> None:
        self._requests: dict[str, UserApprovalRequest] = {}
        self._lock = asyncio.Lock()

    async def insert_request(self, *, request: UserApprovalRequest) -> None:
        async with self._lock:
            if request.id in self._requests:
                raise ValueError(f"approval request already exists: {request.id}")
            self._requests[request.id] = request

    async def get_request(self, *, request_id: str) -> UserApprovalRequest | None:
        return self._requests.get(request_id)

    async def list_user_requests(
        self, *, user_id: str, status: ApprovalStatus | None
    ) -> tuple[UserApprovalRequest, ...]:
        rows = [
            row
            for row in self._requests.values()
            if row.user_id == user_id and (status is None or row.status is status)
        ]
        rows.sort(key=lambda row: row.requested_at)
        return tuple(rows)

    async def transition(
        self,
        *,
        request_id: str,
        to_status: ApprovalStatus,
        resolved_at: datetime,
        resolution: ApprovalDecision | None,
        resolved_by: str | None,
        action: ScheduledAction | None = None,
    ) -> UserApprovalRequest | None:
        async with self._lock:
            current = self._requests.get(request_id)
            if current is None or current.status is not ApprovalStatus.PENDING:
                return None
            update: dict[str, Any] = {
                "status": to_status,
                "resolved_at": resolved_at,
                "resolution": resolution,
                "resolved_by": resolved_by,
            }
            if action is not None:
                update["action"] = action
            updated = current.model_copy(update=update)
            self._requests[request_id] = updated
            return updated

    async def list_overdue(self, *, now: datetime) -> tuple[UserApprovalRequest, ...]:
        rows = [
            row
            for row in self._requests.values()
            if row.status is ApprovalStatus.PENDING and row.expires_at <= now
        ]
        rows.sort(key=lambda row: row.requested_at)
        return tuple(rows)


class PostgresApprovalRepository(ApprovalRepository):
    """SQL repository over Approval Workflow-owned schema tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    async def insert_request(self, *, request: UserApprovalRequest) -> None:
        async with self._sessions.session() as session:
            await session.execute(
                approval_requests.insert().values(
                    id=request.id,
                    tenant_id=request.tenant_id,
                    user_id=request.user_id,
                    status=request.status.value,
                    action_json=request.action.model_dump(mode="json"),
                    relevance_json=request.relevance_result.model_dump(mode="json"),
                    reason=request.reason,
                    original_overrides=request.original_overrides,
                    alternatives_json=[
                        alternative.model_dump(mode="json")
                        for alternative in request.alternatives
                    ],
                    trace_id=request.trace_id,
                    requested_at=request.requested_at,
                    expires_at=request.expires_at,
                    resolved_at=request.resolved_at,
                    resolution=(
                        None if request.resolution is None else request.resolution.value
                    ),
                    resolved_by=request.resolved_by,
                )
            )

    async def get_request(self, *, request_id: str) -> UserApprovalRequest | None:
        async with self._sessions.session() as session:
            result = await session.execute(
                select(approval_requests).where(approval_requests.c.id == request_id)
            )
            row = result.mappings().one_or_none()
        return None if row is None else _to_request(row)

    async def list_user_requests(
        self, *, user_id: str, status: ApprovalStatus | None
    ) -> tuple[UserApprovalRequest, ...]:
        stmt = select(approval_requests).where(approval_requests.c.user_id == user_id)
        if status is not None:
            stmt = stmt.where(approval_requests.c.status == status.value)
        stmt = stmt.order_by(approval_requests.c.requested_at)
        async with self._sessions.session() as session:
            result = await session.execute(stmt)
            return tuple(_to_request(row) for row in result.mappings().all())

    async def transition(
        self,
        *,
        request_id: str,
        to_status: ApprovalStatus,
        resolved_at: datetime,
        resolution: ApprovalDecision | None,
        resolved_by: str | None,
        action: ScheduledAction | None = None,
    ) -> UserApprovalRequest | None:
        values: dict[str, Any] = {
            "status": to_status.value,
            "resolved_at": resolved_at,
            "resolution": None if resolution is None else resolution.value,
            "resolved_by": resolved_by,
        }
        if action is not None:
            values["action_json"] = action.model_dump(mode="json")
        async with self._sessions.session() as session:
            result = await session.execute(
                approval_requests.update()
                .where(
                    approval_requests.c.id == request_id,
                    approval_requests.c.status == ApprovalStatus.PENDING.value,
                )
                .values(**values)
                .returning(*approval_requests.c)
            )
            row = result.mappings().one_or_none()
        return None if row is None else _to_request(row)

    async def list_overdue(self, *, now: datetime) -> tuple[UserApprovalRequest, ...]:
        async with self._sessions.session() as session:
            result = await session.execute(
                select(approval_requests)
                .where(
                    approval_requests.c.status == ApprovalStatus.PENDING.value,
                    approval_requests.c.expires_at <= now,
                )
                .order_by(approval_requests.c.requested_at)
            )
            return tuple(_to_request(row) for row in result.mappings().all())


def _to_request(row: Mapping[str, Any]) -> UserApprovalRequest:
    resolution = row["resolution"]
    return UserApprovalRequest(
        id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        user_id=str(row["user_id"]),
        action=ScheduledAction.model_validate(row["action_json"]),
        relevance_result=ActionRelevanceResult.model_validate(row["relevance_json"]),
        reason=str(row["reason"]),
        original_overrides=dict(row["original_overrides"] or {}),
        alternatives=tuple(
            ScheduledAction.model_validate(item)
            for item in row["alternatives_json"] or []
        ),
        trace_id=str(row["trace_id"]),
        status=ApprovalStatus(row["status"]),
        requested_at=row["requested_at"],
        expires_at=row["expires_at"],
        resolved_at=row["resolved_at"],
        resolution=None if resolution is None else ApprovalDecision(resolution),
        resolved_by=row["resolved_by"],
    )
