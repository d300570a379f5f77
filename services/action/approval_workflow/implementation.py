"""Concrete Approval Workflow Service with guarded one-way transitions."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.crm_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    not_found_error,
    policy_error,
    validation_error,
)
from packages.crm_shared.logging import get_logger, public_api_instrumented
from resources.substrates.postgres.errors import normalize_postgres_error
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ScheduledAction,
    UrgencyLevel,
)
from services.action.approval_workflow.component import SERVICE_COMPONENT_ID
from services.action.approval_workflow.config import (
    ApprovalSimilaritySettings,
    ApprovalWorkflowSettings,
    resolve_approval_workflow_settings,
)
from services.action.approval_workflow.data.repository import (
    InMemoryApprovalRepository,
    PostgresApprovalRepository,
)
from services.action.approval_workflow.data.runtime import (
    ApprovalWorkflowPostgresRuntime,
)
from services.action.approval_workflow.domain import (
    ApprovalDecision,
    ApprovalResolution,
    ApprovalStatus,
    BulkApprovalResult,
    ExpirySweepResult,
    UserApprovalRequest,
    UserApprovalResponse,
)
from services.action.approval_workflow.interfaces import (
    ApprovalRepository,
    SimilarityPredicate,
)
from services.action.approval_workflow.service import ApprovalWorkflowService
from services.action.contracts import parameter_datetime, utc_now

_LOGGER = get_logger(__name__)


class DefaultApprovalWorkflowService(ApprovalWorkflowService):
    """Default approval lifecycle over a compare-and-set repository."""

    def __init__(
        self,
        *,
        settings: ApprovalWorkflowSettings,
        repository: ApprovalRepository | None = None,
        similarity: SimilarityPredicate | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository or InMemoryApprovalRepository()
        self._similarity = similarity or similarity_policy(settings.similarity)

    @classmethod
    def from_settings(
        cls,
        settings: CrmSettings,
        *,
        repository: ApprovalRepository | None = None,
        similarity: SimilarityPredicate | None = None,
    ) -> "DefaultApprovalWorkflowService":
        """Build approval workflow from typed root runtime settings."""
        if repository is None:
            runtime = ApprovalWorkflowPostgresRuntime.from_settings(settings)
            repository = PostgresApprovalRepository(runtime.schema_sessions)
        return cls(
            settings=resolve_approval_workflow_settings(settings),
            repository=repository,
            similarity=similarity,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    async def create_approval_request(
        self,
        *,
        meta: EnvelopeMeta,
        action: ScheduledAction,
        relevance_result: ActionRelevanceResult,
        user_id: str,
        reason: str,
        overrides: dict[str, Any] | None = None,
        tenant_id: str | None = None,
        alternatives: tuple[ScheduledAction, ...] = (),
    ) -> Envelope[UserApprovalRequest]:
        """Persist one pending request that expires after the configured TTL."""
        invalid = _invalid_meta(meta)
        if invalid is not None:
            return failure(meta=meta, errors=[invalid])
        resolved_tenant = tenant_id or action.tenant_id
        if not resolved_tenant:
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        "tenant_id is required", code=codes.INVALID_ARGUMENT
                    )
                ],
            )
        if not user_id:
            return failure(
                meta=meta,
                errors=[
                    validation_error("user_id is required", code=codes.INVALID_ARGUMENT)
                ],
            )

        now = utc_now()
        request = UserApprovalRequest(
            tenant_id=resolved_tenant,
            user_id=user_id,
            action=action.model_copy(update={"status": "pending_approval"}),
            relevance_result=relevance_result,
            reason=reason,
            original_overrides=dict(overrides or {}),
            alternatives=tuple(alternatives),
            trace_id=meta.trace_id,
            requested_at=now,
            expires_at=now + timedelta(minutes=self._settings.approval_ttl_minutes),
        )
        try:
            await self._repository.insert_request(request=request)
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        _LOGGER.info(
            "Approval request created: request_id=%s tenant_id=%s action_type=%s "
            "trace_id=%s",
            request.id,
            request.tenant_id,
            request.action.action_type,
            request.trace_id,
        )
        return success(meta=meta, payload=request)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def process_approval_response(
        self, *, meta: EnvelopeMeta, response: UserApprovalResponse
    ) -> Envelope[ApprovalResolution]:
        """Resolve one pending request and return the resulting action.

        Rejections resolve to no action. Modify and defer resolve as approved
        with the modified or rescheduled action. A bulk-flagged response is
        also applied to the responder's similar pending requests.
        """
        invalid = _invalid_meta(meta)
        if invalid is not None:
            return failure(meta=meta, errors=[invalid])

        try:
            request = await self._repository.get_request(
                request_id=response.request_id
            )
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        if request is None:
            return failure(
                meta=meta,
                errors=[
                    not_found_error(
                        "approval request not found",
                        metadata={"request_id": response.request_id},
                    )
                ],
            )
        if request.user_id != response.user_id:
            return failure(
                meta=meta,
                errors=[
                    policy_error(
                        "approval request belongs to another user",
                        code=codes.PERMISSION_DENIED,
                        metadata={"request_id": request.id},
                    )
                ],
            )

        now = utc_now()
        try:
            rejected = await self._reject_unresolvable(
                meta=meta, request=request, now=now
            )
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        if rejected is not None:
            return rejected

        try:
            action = _resolved_action(
                request.action,
                response=response,
                defer=timedelta(minutes=self._settings.defer_minutes),
            )
        except ValueError as exc:
            return failure(
                meta=meta,
                errors=[validation_error(str(exc), code=codes.INVALID_ARGUMENT)],
            )

        try:
            updated = await self._repository.transition(
                request_id=request.id,
                to_status=response.decision.resolved_status,
                resolved_at=now,
                resolution=response.decision,
                resolved_by=response.user_id,
                action=action,
            )
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        if updated is None:
            return _already_resolved(meta=meta, request_id=request.id)

        bulk_count = 0
        if response.apply_to_similar_actions and self._settings.enable_bulk_approval:
            try:
                similar = await self._apply_to_similar(
                    anchor=updated, response=response, now=now
                )
            except SQLAlchemyError as exc:
                # The anchor stays resolved; only the bulk step failed.
                return failure(
                    meta=meta,
                    errors=[normalize_postgres_error(exc)],
                    payload=ApprovalResolution(request=updated, action=action),
                )
            bulk_count = len(similar)

        _LOGGER.info(
            "Approval request resolved: request_id=%s decision=%s bulk_count=%s "
            "trace_id=%s",
            updated.id,
            response.decision.value,
            bulk_count,
            updated.trace_id,
        )
        return success(
            meta=meta,
            payload=ApprovalResolution(
                request=updated,
                action=action,
                bulk_count=bulk_count,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    async def apply_bulk_approval(
        self, *, meta: EnvelopeMeta, response: UserApprovalResponse, user_id: str
    ) -> Envelope[BulkApprovalResult]:
        """Apply one decision to the user's other similar pending requests."""
        invalid = _invalid_meta(meta)
        if invalid is not None:
            return failure(meta=meta, errors=[invalid])
        if response.user_id != user_id:
            return failure(
                meta=meta,
                errors=[
                    policy_error(
                        "bulk approval must be issued by the request owner",
                        code=codes.PERMISSION_DENIED,
                    )
                ],
            )
        if not self._settings.enable_bulk_approval:
            return failure(
                meta=meta,
                errors=[policy_error("bulk approval is disabled")],
            )

        try:
            anchor = await self._repository.get_request(
                request_id=response.request_id
            )
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        if anchor is None:
            return failure(
                meta=meta,
                errors=[
                    not_found_error(
                        "approval request not found",
                        metadata={"request_id": response.request_id},
                    )
                ],
            )
        if anchor.user_id != user_id:
            return failure(
                meta=meta,
                errors=[
                    policy_error(
                        "approval request belongs to another user",
                        code=codes.PERMISSION_DENIED,
                        metadata={"request_id": anchor.id},
                    )
                ],
            )

        try:
            resolved = await self._apply_to_similar(
                anchor=anchor, response=response, now=utc_now()
            )
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        return success(
            meta=meta,
            payload=BulkApprovalResult(
                affected_count=len(resolved),
                request_ids=tuple(row.id for row in resolved),
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    async def get_pending_approvals(
        self, *, meta: EnvelopeMeta, user_id: str, include_expired: bool = False
    ) -> Envelope[tuple[UserApprovalRequest, ...]]:
        """Return one user's pending requests ordered by request time."""
        invalid = _invalid_meta(meta)
        if invalid is not None:
            return failure(meta=meta, errors=[invalid])
        try:
            rows = await self._repository.list_user_requests(
                user_id=user_id, status=ApprovalStatus.PENDING
            )
        except SQLAlchemyError as exc:
            return failure(meta=meta, errors=[normalize_postgres_error(exc)])
        if not include_expired:
            now = utc_now()
            rows = tuple(row for row in rows if not row.is_expired(now))
        return success(meta=meta, payload=rows)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def expire_stale_approvals(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[ExpirySweepResult]:
        """Transition every overdue pending request to ``expired``."""
        invalid = _invalid_meta(meta)
        if invalid is not None:
            return failure(meta=meta, errors=[invalid])
        now = utc_now()
        expired: list[str] = []
        try:
            for row in await self._repository.list_overdue(now=now):
                updated = await self._repository.transition(
                    request_id=row.id,
                    to_status=ApprovalStatus.EXPIRED,
                    resolved_at=now,
                    resolution=None,
                    resolved_by=None,
                )
                if updated is not None:
                    expired.append(updated.id)
        except SQLAlchemyError as exc:
            # Rows already expired stay expired; report them with the error.
            return failure(
                meta=meta,
                errors=[normalize_postgres_error(exc)],
                payload=ExpirySweepResult(
                    expired_count=len(expired), request_ids=tuple(expired)
                ),
            )
        if expired:
            _LOGGER.info("Expired stale approval requests: count=%s", len(expired))
        return success(
            meta=meta,
            payload=ExpirySweepResult(
                expired_count=len(expired), request_ids=tuple(expired)
            ),
        )

    async def _reject_unresolvable(
        self, *, meta: EnvelopeMeta, request: UserApprovalRequest, now: datetime
    ) -> Envelope[ApprovalResolution] | None:
        """Return a conflict envelope for expired or already resolved requests."""
        if request.status is ApprovalStatus.PENDING and request.expires_at <= now:
            expired = await self._repository.transition(
                request_id=request.id,
                to_status=ApprovalStatus.EXPIRED,
                resolved_at=now,
                resolution=None,
                resolved_by=None,
            )
            if expired is None:
                return _already_resolved(meta=meta, request_id=request.id)
            _LOGGER.warning(
                "Approval response rejected as expired: request_id=%s trace_id=%s",
                request.id,
                request.trace_id,
            )
            return _expired(meta=meta, request=expired)
        if request.status is ApprovalStatus.EXPIRED:
            return _expired(meta=meta, request=request)
        if request.status is not ApprovalStatus.PENDING:
            return _already_resolved(meta=meta, request_id=request.id)
        return None

    async def _apply_to_similar(
        self,
        *,
        anchor: UserApprovalRequest,
        response: UserApprovalResponse,
        now: datetime,
    ) -> list[UserApprovalRequest]:
        """Resolve the owner's other pending, unexpired requests like ``anchor``."""
        candidates = await self._repository.list_user_requests(
            user_id=anchor.user_id, status=ApprovalStatus.PENDING
        )
        defer = timedelta(minutes=self._settings.defer_minutes)
        resolved: list[UserApprovalRequest] = []
        for candidate in candidates:
            if candidate.id == anchor.id or candidate.user_id != anchor.user_id:
                continue
            if candidate.is_expired(now) or not self._similarity(anchor, candidate):
                continue
            try:
                action = _resolved_action(
                    candidate.action, response=response, defer=defer
                )
            except ValueError as exc:
                _LOGGER.warning(
                    "Bulk approval skipped request: request_id=%s error=%s",
                    candidate.id,
                    exc,
                )
                continue
            updated = await self._repository.transition(
                request_id=candidate.id,
                to_status=response.decision.resolved_status,
                resolved_at=now,
                resolution=response.decision,
                resolved_by=response.user_id,
                action=action,
            )
            if updated is not None:
                resolved.append(updated)
        return resolved


def similarity_policy(settings: ApprovalSimilaritySettings) -> SimilarityPredicate:
    """Return a predicate deciding whether two requests are bulk-compatible.

    Both requests must belong to the same tenant and their action types must
    match case-insensitively. Contact and execution window checks are
    enabled by settings.
    """
    window = (
        None
        if settings.window_hours is None
        else timedelta(hours=settings.window_hours)
    )

    def _similar(anchor: UserApprovalRequest, other: UserApprovalRequest) -> bool:
        if anchor.tenant_id != other.tenant_id:
            return False
        left = anchor.action
        right = other.action
        if left.action_type.lower() != right.action_type.lower():
            return False
        if settings.match_contact and left.contact_id != right.contact_id:
            return False
        if window is not None and abs(left.execute_at - right.execute_at) >= window:
            return False
        return True

    return _similar


def _resolved_action(
    action: ScheduledAction,
    *,
    response: UserApprovalResponse,
    defer: timedelta,
) -> ScheduledAction | None:
    """Return the action that results from one decision, if any."""
    decision = response.decision
    if decision is ApprovalDecision.REJECT:
        return None
    if decision is ApprovalDecision.DEFER:
        return action.model_copy(
            update={
                "execute_at": action.execute_at + defer,
                "status": "scheduled",
            }
        )
    if decision is ApprovalDecision.MODIFY:
        return _apply_modifications(action, response.suggested_modifications)
    return action.model_copy(update={"status": "validated"})


def _apply_modifications(
    action: ScheduledAction, modifications: dict[str, Any]
) -> ScheduledAction:
    """Apply known top-level fields; other keys are written to parameters."""
    update: dict[str, Any] = {"status": "validated"}
    parameters = dict(action.parameters)
    for key, value in modifications.items():
        lowered = key.lower()
        if lowered == "description":
            update["description"] = str(value)
        elif lowered == "executeat":
            execute_at = parameter_datetime({key: value}, key)
            if execute_at is None:
                raise ValueError("executeAt modification requires a timestamp")
            update["execute_at"] = execute_at
        elif lowered == "priority":
            update["priority"] = _priority(value)
        else:
            parameters[key] = value
    update["parameters"] = parameters
    return action.model_copy(update=update)


def _priority(value: Any) -> UrgencyLevel:
    if isinstance(value, UrgencyLevel):
        return value
    if isinstance(value, str):
        try:
            return UrgencyLevel[value.strip().upper()]
        except KeyError:
            raise ValueError(f"unknown priority: {value}") from None
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return UrgencyLevel(value)
        except ValueError:
            raise ValueError(f"unknown priority: {value}") from None
    raise ValueError("priority must be a level name or integer")


def _invalid_meta(meta: EnvelopeMeta) -> ErrorDetail | None:
    try:
        validate_meta(meta)
    except ValueError as exc:
        return validation_error(str(exc), code=codes.INVALID_ARGUMENT)
    return None


def _expired(
    *, meta: EnvelopeMeta, request: UserApprovalRequest
) -> Envelope[ApprovalResolution]:
    return failure(
        meta=meta,
        errors=[
            conflict_error(
                "approval request has expired",
                code=codes.APPROVAL_EXPIRED,
                metadata={"request_id": request.id},
            )
        ],
        payload=ApprovalResolution(request=request),
    )


def _already_resolved(
    *, meta: EnvelopeMeta, request_id: str
) -> Envelope[ApprovalResolution]:
    return failure(
        meta=meta,
        errors=[
            conflict_error(
                "approval request is already resolved",
                code=codes.APPROVAL_ALREADY_RESOLVED,
                metadata={"request_id": request_id},
            )
        ],
    )
