"""Unit tests for approval request lifecycle and bulk resolution."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from packages.crm_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from packages.crm_shared.errors import codes
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ScheduledAction,
    UrgencyLevel,
)
from services.action.approval_workflow.config import ApprovalWorkflowSettings
from services.action.approval_workflow.data.repository import (
    InMemoryApprovalRepository,
)
from services.action.approval_workflow.domain import (
    ApprovalDecision,
    ApprovalStatus,
    UserApprovalRequest,
    UserApprovalResponse,
)
from services.action.approval_workflow.implementation import (
    DefaultApprovalWorkflowService,
)
from services.action.contracts import utc_now


def _meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


def _service(
    repository: InMemoryApprovalRepository | None = None, **overrides: object
) -> DefaultApprovalWorkflowService:
    return DefaultApprovalWorkflowService(
        settings=ApprovalWorkflowSettings.model_validate(overrides),
        repository=repository or InMemoryApprovalRepository(),
    )


def _action(**overrides: object) -> ScheduledAction:
    values: dict[str, object] = {
        "tenant_id": "tenant-a",
        "action_type": "SendEmail",
        "description": "Send follow-up",
        "contact_id": "contact-1",
    }
    values.update(overrides)
    return ScheduledAction.model_validate(values)


def _relevance() -> ActionRelevanceResult:
    return ActionRelevanceResult(
        is_relevant=True, confidence=0.6, reason="Low confidence"
    )


async def _create(
    service: DefaultApprovalWorkflowService,
    *,
    user_id: str = "user-1",
    action: ScheduledAction | None = None,
) -> UserApprovalRequest:
    envelope = await service.create_approval_request(
        meta=_meta(),
        action=action or _action(),
        relevance_result=_relevance(),
        user_id=user_id,
        reason="Risk above threshold",
        overrides={"OverrideMode": "RiskBased"},
    )
    assert envelope.ok
    assert envelope.payload is not None
    return envelope.payload.value


def _response(
    request_id: str,
    decision: ApprovalDecision = ApprovalDecision.APPROVE,
    *,
    user_id: str = "user-1",
    **overrides: object,
) -> UserApprovalResponse:
    values: dict[str, object] = {
        "request_id": request_id,
        "decision": decision,
        "user_id": user_id,
    }
    values.update(overrides)
    return UserApprovalResponse.model_validate(values)


async def _insert_expired(
    repository: InMemoryApprovalRepository, *, user_id: str = "user-1"
) -> UserApprovalRequest:
    now = utc_now()
    request = UserApprovalRequest(
        tenant_id="tenant-a",
        user_id=user_id,
        action=_action(),
        relevance_result=_relevance(),
        requested_at=now - timedelta(hours=2),
        expires_at=now - timedelta(minutes=1),
    )
    await repository.insert_request(request=request)
    return request


@pytest.mark.asyncio
async def test_create_sets_expiry_from_ttl_and_pending_status() -> None:
    """New requests are pending and expire after the configured TTL."""
    service = _service(approval_ttl_minutes=30)

    request = await _create(service)

    assert request.status is ApprovalStatus.PENDING
    assert request.action.status == "pending_approval"
    assert request.expires_at - request.requested_at == timedelta(minutes=30)
    assert request.original_overrides == {"OverrideMode": "RiskBased"}


@pytest.mark.asyncio
async def test_create_rejects_invalid_metadata() -> None:
    """Envelope metadata without a trace id is rejected before persistence."""
    service = _service()
    meta = _meta()
    broken = EnvelopeMeta(
        envelope_id=meta.envelope_id,
        trace_id="",
        parent_id="",
        timestamp=meta.timestamp,
        kind=meta.kind,
        source=meta.source,
        principal=meta.principal,
    )

    envelope = await service.create_approval_request(
        meta=broken,
        action=_action(),
        relevance_result=_relevance(),
        user_id="user-1",
        reason="r",
    )

    assert envelope.error_codes == (codes.INVALID_ARGUMENT,)


@pytest.mark.asyncio
async def test_approve_returns_action_and_resolves_request() -> None:
    """Approving transitions the request and returns the validated action."""
    service = _service()
    request = await _create(service)

    envelope = await service.process_approval_response(
        meta=_meta(), response=_response(request.id)
    )

    assert envelope.ok
    assert envelope.payload is not None
    resolution = envelope.payload.value
    assert resolution.request.status is ApprovalStatus.APPROVED
    assert resolution.request.resolved_by == "user-1"
    assert resolution.action is not None
    assert resolution.action.status == "validated"


@pytest.mark.asyncio
async def test_reject_returns_no_action() -> None:
    """Rejected requests resolve without a resulting action."""
    service = _service()
    request = await _create(service)

    envelope = await service.process_approval_response(
        meta=_meta(), response=_response(request.id, ApprovalDecision.REJECT)
    )

    assert envelope.payload is not None
    assert envelope.payload.value.request.status is ApprovalStatus.REJECTED
    assert envelope.payload.value.action is None


@pytest.mark.asyncio
async def test_second_response_is_reported_as_conflict() -> None:
    """A resolved request cannot transition again."""
    service = _service()
    request = await _create(service)
    await service.process_approval_response(
        meta=_meta(), response=_response(request.id)
    )

    envelope = await service.process_approval_response(
        meta=_meta(), response=_response(request.id, ApprovalDecision.REJECT)
    )

    assert envelope.error_codes == (codes.APPROVAL_ALREADY_RESOLVED,)


@pytest.mark.asyncio
async def test_expired_request_response_is_rejected_as_expired() -> None:
    """Responses to expired requests are conflicts and mark them expired."""
    repository = InMemoryApprovalRepository()
    service = _service(repository)
    request = await _insert_expired(repository)

    envelope = await service.process_approval_response(
        meta=_meta(), response=_response(request.id)
    )

    assert envelope.error_codes == (codes.APPROVAL_EXPIRED,)
    stored = await repository.get_request(request_id=request.id)
    assert stored is not None
    assert stored.status is ApprovalStatus.EXPIRED


@pytest.mark.asyncio
async def test_unknown_request_and_foreign_responder() -> None:
    """Missing requests are not found; other users are denied."""
    service = _service()
    request = await _create(service)

    missing = await service.process_approval_response(
        meta=_meta(), response=_response("nope")
    )
    foreign = await service.process_approval_response(
        meta=_meta(), response=_response(request.id, user_id="user-2")
    )

    assert missing.error_codes == (codes.NOT_FOUND,)
    assert foreign.error_codes == (codes.PERMISSION_DENIED,)


@pytest.mark.asyncio
async def test_modify_applies_known_fields_and_parameters() -> None:
    """Modify updates description, priority, execute time, and parameters."""
    service = _service()
    request = await _create(service)
    new_time = utc_now() + timedelta(days=2)

    envelope = await service.process_approval_response(
        meta=_meta(),
        response=_response(
            request.id,
            ApprovalDecision.MODIFY,
            suggested_modifications={
                "Description": "Softer follow-up",
                "priority": "high",
                "executeAt": new_time.isoformat(),
                "template": "gentle",
            },
        ),
    )

    assert envelope.payload is not None
    action = envelope.payload.value.action
    assert action is not None
    assert envelope.payload.value.request.status is ApprovalStatus.APPROVED
    assert action.description == "Softer follow-up"
    assert action.priority is UrgencyLevel.HIGH
    assert action.execute_at == new_time
    assert action.parameters["template"] == "gentle"


@pytest.mark.asyncio
async def test_invalid_modification_leaves_request_pending() -> None:
    """Malformed modifications fail validation without resolving."""
    repository = InMemoryApprovalRepository()
    service = _service(repository)
    request = await _create(service)

    envelope = await service.process_approval_response(
        meta=_meta(),
        response=_response(
            request.id,
            ApprovalDecision.MODIFY,
            suggested_modifications={"priority": "urgent-ish"},
        ),
    )

    assert envelope.error_codes == (codes.INVALID_ARGUMENT,)
    stored = await repository.get_request(request_id=request.id)
    assert stored is not None
    assert stored.status is ApprovalStatus.PENDING


@pytest.mark.asyncio
async def test_defer_reschedules_by_configured_minutes() -> None:
    """Deferral approves the action rescheduled by ``defer_minutes``."""
    service = _service(defer_minutes=90)
    original = _action()
    request = await _create(service, action=original)

    envelope = await service.process_approval_response(
        meta=_meta(), response=_response(request.id, ApprovalDecision.DEFER)
    )

    assert envelope.payload is not None
    action = envelope.payload.value.action
    assert action is not None
    assert action.execute_at == original.execute_at + timedelta(minutes=90)


@pytest.mark.asyncio
async def test_bulk_flag_resolves_similar_requests_of_same_user_only() -> None:
    """Bulk responses never touch other users or dissimilar requests."""
    repository = InMemoryApprovalRepository()
    service = _service(repository)
    anchor = await _create(service)
    similar = await _create(service)
    other_contact = await _create(service, action=_action(contact_id="contact-9"))
    other_type = await _create(service, action=_action(action_type="SendSms"))
    other_user = await _create(service, user_id="user-2")

    envelope = await service.process_approval_response(
        meta=_meta(),
        response=_response(anchor.id, apply_to_similar_actions=True),
    )

    assert envelope.payload is not None
    assert envelope.payload.value.bulk_count == 1
    statuses = {
        row.id: (await repository.get_request(request_id=row.id)).status
        for row in (similar, other_contact, other_type, other_user)
    }
    assert statuses[similar.id] is ApprovalStatus.APPROVED
    assert statuses[other_contact.id] is ApprovalStatus.PENDING
    assert statuses[other_type.id] is ApprovalStatus.PENDING
    assert statuses[other_user.id] is ApprovalStatus.PENDING


@pytest.mark.asyncio
async def test_apply_bulk_approval_with_contact_matching_disabled() -> None:
    """Similarity policy is configurable and skips expired requests."""
    repository = InMemoryApprovalRepository()
    service = _service(repository, similarity={"match_contact": False})
    anchor = await _create(service)
    await _create(service, action=_action(contact_id="contact-9"))
    await _insert_expired(repository)

    envelope = await service.apply_bulk_approval(
        meta=_meta(), response=_response(anchor.id), user_id="user-1"
    )

    assert envelope.payload is not None
    assert envelope.payload.value.affected_count == 1


@pytest.mark.asyncio
async def test_apply_bulk_approval_uses_injected_predicate() -> None:
    """An injected predicate replaces the configured similarity policy."""
    repository = InMemoryApprovalRepository()
    service = DefaultApprovalWorkflowService(
        settings=ApprovalWorkflowSettings(),
        repository=repository,
        similarity=lambda anchor, other: False,
    )
    anchor = await _create(service)
    await _create(service)

    envelope = await service.apply_bulk_approval(
        meta=_meta(), response=_response(anchor.id), user_id="user-1"
    )

    assert envelope.payload is not None
    assert envelope.payload.value.affected_count == 0


@pytest.mark.asyncio
async def test_apply_bulk_approval_rejects_foreign_user() -> None:
    """Bulk application requires the responder to own the anchor request."""
    service = _service()
    anchor = await _create(service)

    envelope = await service.apply_bulk_approval(
        meta=_meta(),
        response=_response(anchor.id, user_id="user-2"),
        user_id="user-2",
    )

    assert envelope.error_codes == (codes.PERMISSION_DENIED,)


@pytest.mark.asyncio
async def test_pending_approvals_exclude_expired_unless_requested() -> None:
    """Expired rows are hidden by default and ordered by request time."""
    repository = InMemoryApprovalRepository()
    service = _service(repository)
    expired = await _insert_expired(repository)
    fresh = await _create(service)

    default = await service.get_pending_approvals(meta=_meta(), user_id="user-1")
    everything = await service.get_pending_approvals(
        meta=_meta(), user_id="user-1", include_expired=True
    )

    assert default.payload is not None
    assert [row.id for row in default.payload.value] == [fresh.id]
    assert everything.payload is not None
    assert [row.id for row in everything.payload.value] == [expired.id, fresh.id]


@pytest.mark.asyncio
async def test_expire_stale_approvals_sweeps_overdue_rows() -> None:
    """The sweep transitions overdue pending requests exactly once."""
    repository = InMemoryApprovalRepository()
    service = _service(repository)
    expired = await _insert_expired(repository)
    await _create(service)

    first = await service.expire_stale_approvals(meta=_meta())
    second = await service.expire_stale_approvals(meta=_meta())

    assert first.payload is not None
    assert first.payload.value.request_ids == (expired.id,)
    assert second.payload is not None
    assert second.payload.value.expired_count == 0


class _UnavailableRepository(InMemoryApprovalRepository):
    """Repository whose every write fails as if Postgres were down."""

    async def insert_request(self, *, request: UserApprovalRequest) -> None:
        raise OperationalError("INSERT INTO approval_requests", {}, Exception("down"))


@pytest.mark.asyncio
async def test_create_maps_store_outage_to_retryable_dependency_error() -> None:
    """Database outages surface as failure envelopes, not exceptions."""
    service = _service(_UnavailableRepository())

    envelope = await service.create_approval_request(
        meta=_meta(),
        action=_action(),
        relevance_result=_relevance(),
        user_id="user-1",
        reason="Risk above threshold",
    )

    assert envelope.ok is False
    assert envelope.error_codes == (codes.DEPENDENCY_UNAVAILABLE,)
    assert envelope.errors[0].retryable is True


class _ReadOnlyRepository(InMemoryApprovalRepository):
    """Repository that still reads single rows but fails every other call."""

    async def transition(self, **kwargs: object) -> UserApprovalRequest | None:
        raise OperationalError("UPDATE approval_requests", {}, Exception("down"))

    async def list_user_requests(
        self, **kwargs: object
    ) -> tuple[UserApprovalRequest, ...]:
        raise OperationalError("SELECT approval_requests", {}, Exception("down"))

    async def list_overdue(self, **kwargs: object) -> tuple[UserApprovalRequest, ...]:
        raise OperationalError("SELECT approval_requests", {}, Exception("down"))


@pytest.mark.asyncio
async def test_store_outage_on_resolution_and_listing_returns_failures() -> None:
    """Response, listing and sweep calls all report outages as envelopes."""
    repository = _ReadOnlyRepository()
    service = _service(repository)
    request = await _create(service)

    resolved = await service.process_approval_response(
        meta=_meta(), response=_response(request.id)
    )
    pending = await service.get_pending_approvals(meta=_meta(), user_id="user-1")
    bulk = await service.apply_bulk_approval(
        meta=_meta(), response=_response(request.id), user_id="user-1"
    )
    sweep = await service.expire_stale_approvals(meta=_meta())

    for envelope in (resolved, pending, bulk, sweep):
        assert envelope.ok is False
        assert envelope.error_codes == (codes.DEPENDENCY_UNAVAILABLE,)
    stored = await repository.get_request(request_id=request.id)
    assert stored is not None
    assert stored.status is ApprovalStatus.PENDING


class _BulkListingFailsRepository(InMemoryApprovalRepository):
    async def list_user_requests(
        self, **kwargs: object
    ) -> tuple[UserApprovalRequest, ...]:
        raise OperationalError("SELECT approval_requests", {}, Exception("down"))


@pytest.mark.asyncio
async def test_bulk_step_outage_keeps_anchor_resolution_in_payload() -> None:
    """A failed bulk step still reports the anchor it already resolved."""
    repository = _BulkListingFailsRepository()
    service = _service(repository)
    anchor = await _create(service)

    envelope = await service.process_approval_response(
        meta=_meta(),
        response=_response(anchor.id, apply_to_similar_actions=True),
    )

    assert envelope.error_codes == (codes.DEPENDENCY_UNAVAILABLE,)
    assert envelope.payload is not None
    assert envelope.payload.value.request.status is ApprovalStatus.APPROVED
    assert envelope.payload.value.action is not None


@pytest.mark.asyncio
async def test_bulk_approval_never_crosses_tenants() -> None:
    """A user id shared across tenants only resolves its own tenant's rows."""
    repository = InMemoryApprovalRepository()
    service = _service(repository)
    anchor = await _create(service)
    same_tenant = await _create(service)
    other_tenant = await _create(service, action=_action(tenant_id="tenant-b"))

    envelope = await service.apply_bulk_approval(
        meta=_meta(), response=_response(anchor.id), user_id="user-1"
    )

    assert envelope.payload is not None
    assert envelope.payload.value.request_ids == (same_tenant.id,)
    untouched = await repository.get_request(request_id=other_tenant.id)
    assert untouched is not None
    assert untouched.status is ApprovalStatus.PENDING
