"""Unit tests for staged validation of replayed and planned executions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pydantic
import pytest

from packages.crm_shared.envelope import EnvelopeKind, new_meta
from packages.crm_shared.errors import codes, dependency_error
from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.action_relevance.data.repository import (
    InMemoryValidationAuditRepository,
)
from services.action.action_relevance.implementation import (
    DefaultActionRelevanceService,
)
from services.action.agent_planner.domain import PlannedExecution
from services.action.approval_workflow.config import ApprovalWorkflowSettings
from services.action.approval_workflow.data.repository import (
    InMemoryApprovalRepository,
)
from services.action.approval_workflow.implementation import (
    DefaultApprovalWorkflowService,
)
from services.action.contracts import AgentRequest, ValidationContext, utc_now
from services.action.procedural_memory.domain import (
    CompiledProcedure,
    ProcedureStep,
    ReplayPlan,
)
from services.action.validator_pipeline.config import ValidatorPipelineSettings
from services.action.validator_pipeline.domain import ValidationVerdict
from services.action.validator_pipeline.implementation import (
    DefaultValidatorPipelineService,
)

_NOON = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
_LATE = datetime(2026, 3, 2, 22, 30, tzinfo=UTC)


def _request(**overrides: object) -> AgentRequest:
    values: dict[str, object] = {
        "tenant_id": "tenant-a",
        "organization_id": "org-1",
        "user_id": "user-1",
        "action_type": "follow_up",
        "channel": "email",
        "risk_band": "low",
    }
    values.update(overrides)
    return AgentRequest.model_validate(values)


def _context(**overrides: object) -> ValidationContext:
    return ValidationContext.from_request(_request(**overrides))


def _planned(request: AgentRequest, *, confidence: float = 0.9) -> PlannedExecution:
    return PlannedExecution(
        trace_id=request.trace_id,
        request=request,
        steps=(ProcedureStep(tool="send_sms"),),
        confidence=confidence,
    )


def _replay() -> ReplayPlan:
    return ReplayPlan.from_procedure(
        CompiledProcedure(
            tenant_id="tenant-a",
            action_type="follow_up",
            channel="sms",
            steps=(ProcedureStep(tool="send_sms"),),
        ),
        match_tier="tenant",
    )


class _Harness:
    """Pipeline wired to real in-memory relevance and approval services."""

    def __init__(
        self,
        *,
        now: datetime = _NOON,
        relevance_settings: ActionRelevanceSettings | None = None,
        **pipeline_overrides: object,
    ) -> None:
        self.relevance = DefaultActionRelevanceService(
            settings=relevance_settings or ActionRelevanceSettings(),
            audit_repository=InMemoryValidationAuditRepository(),
        )
        self.approvals = DefaultApprovalWorkflowService(
            settings=ApprovalWorkflowSettings(),
            repository=InMemoryApprovalRepository(),
        )
        self.pipeline = DefaultValidatorPipelineService(
            settings=ValidatorPipelineSettings.model_validate(pipeline_overrides),
            relevance_service=self.relevance,
            approval_service=self.approvals,
            clock=lambda: now,
        )


@pytest.mark.asyncio
async def test_personal_tag_blocks_with_alternative_and_violation() -> None:
    """Privacy-tagged requests are blocked and recorded as violations."""
    harness = _Harness()
    context = _context(parameters={"tags": ["work", "personal"]})

    verdict = await harness.pipeline.validate_replay(plan=_replay(), context=context)

    assert verdict.allowed is False
    assert verdict.stage == "privacy"
    assert verdict.reason == "Blocked: PERSONAL tag"
    assert len(verdict.alternatives) >= 1
    violations = await harness.relevance.list_compliance_violations(
        tenant_id="tenant-a"
    )
    assert [row.violation_type for row in violations] == ["privacy_tag"]


@pytest.mark.asyncio
async def test_bypass_privacy_override_allows_tagged_request() -> None:
    """``BypassPrivacy`` lets tagged requests continue through the stages."""
    harness = _Harness()
    context = _context(
        parameters={"tags": "PERSONAL"}, user_overrides={"BypassPrivacy": True}
    )

    verdict = await harness.pipeline.validate_replay(plan=_replay(), context=context)

    assert verdict.allowed is True


@pytest.mark.asyncio
async def test_malformed_tags_block_as_private() -> None:
    """Unreadable tag parameters fail safe."""
    harness = _Harness()

    verdict = await harness.pipeline.validate_replay(
        plan=_replay(), context=_context(parameters={"tags": 42})
    )

    assert verdict.stage == "privacy"


@pytest.mark.asyncio
async def test_failed_plan_is_blocked_with_planner_error() -> None:
    """A failed plan never reaches relevance or approval."""
    harness = _Harness()
    request = _request()
    error = dependency_error("overloaded", code=codes.SERVICE_OVERLOADED)
    failed = PlannedExecution(trace_id=request.trace_id, request=request, error=error)

    verdict = await harness.pipeline.validate_planned(
        plan=failed, context=ValidationContext.from_request(request)
    )

    assert verdict.allowed is False
    assert verdict.stage == "planner"
    assert verdict.error == error


@pytest.mark.asyncio
async def test_after_hours_sms_requires_override_and_creates_request() -> None:
    """Planned SMS inside 21:00-08:00 UTC waits on a human approval."""
    harness = _Harness(now=_LATE)
    request = _request(channel="sms")

    verdict = await harness.pipeline.validate_planned(
        plan=_planned(request), context=ValidationContext.from_request(request)
    )

    assert verdict.allowed is False
    assert verdict.override_required is True
    assert verdict.stage == "risk"
    assert verdict.approval_request is not None
    pending = await harness.approvals.get_pending_approvals(
        meta=new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="user-1"),
        user_id="user-1",
    )
    assert pending.payload is not None
    assert [row.id for row in pending.payload.value] == [verdict.approval_request.id]


@pytest.mark.asyncio
async def test_occurred_at_parameter_decides_after_hours_window() -> None:
    """``occurredAt`` overrides the current clock for the window check."""
    harness = _Harness(now=_LATE)
    request = _request(
        channel="email",
        parameters={"channel": "SMS", "occurredAt": "2026-03-02T10:15:00Z"},
    )

    verdict = await harness.pipeline.validate_planned(
        plan=_planned(request), context=ValidationContext.from_request(request)
    )

    assert verdict.allowed is True


@pytest.mark.asyncio
async def test_low_planner_confidence_requires_override() -> None:
    """Planner confidence below the threshold requires an override."""
    harness = _Harness()
    request = _request()

    verdict = await harness.pipeline.validate_planned(
        plan=_planned(request, confidence=0.2),
        context=ValidationContext.from_request(request),
    )

    assert verdict.override_required is True
    assert verdict.reason == "Override: low confidence"


@pytest.mark.asyncio
async def test_replay_is_not_subject_to_after_hours_override() -> None:
    """Risk overrides apply to planned executions only."""
    harness = _Harness(now=_LATE)

    verdict = await harness.pipeline.validate_replay(
        plan=_replay(), context=_context(channel="sms")
    )

    assert verdict.allowed is True


@pytest.mark.asyncio
async def test_irrelevant_action_is_rejected_with_alternatives() -> None:
    """Failed relevance criteria reject the action with at least one alternative."""
    harness = _Harness()
    deadline = (utc_now() - timedelta(days=1)).isoformat()
    context = _context(
        contact_id="contact-1",
        parameters={"relevanceCriteria": {"notAfter": deadline}},
    )

    verdict = await harness.pipeline.validate_replay(plan=_replay(), context=context)

    assert verdict.allowed is False
    assert verdict.stage == "relevance"
    assert verdict.relevance is not None
    assert verdict.relevance.is_relevant is False
    assert len(verdict.alternatives) >= 1
    audit = await harness.relevance.get_validation_audit_log(contact_id="contact-1")
    assert len(audit) == 1


@pytest.mark.asyncio
async def test_missing_contact_skips_relevance() -> None:
    """Relevance runs only when a contact is present."""
    harness = _Harness()

    verdict = await harness.pipeline.validate_replay(plan=_replay(), context=_context())

    assert verdict.allowed is True
    assert verdict.relevance is not None
    assert verdict.relevance.validation_method == "Skipped"
    assert await harness.relevance.get_validation_audit_log() == ()


@pytest.mark.asyncio
async def test_high_risk_band_goes_through_approval_gate() -> None:
    """Risk bands above the threshold require approval under RiskBased mode."""
    harness = _Harness()

    verdict = await harness.pipeline.validate_replay(
        plan=_replay(), context=_context(risk_band="high")
    )

    assert verdict.stage == "approval"
    assert verdict.override_required is True
    assert verdict.approval_request is not None
    assert verdict.approval_request.action.risk_band == "high"


@pytest.mark.asyncio
async def test_unrecorded_replay_approval_leaves_no_pending_request() -> None:
    """Replays validated for fallback report the gate but persist nothing."""
    harness = _Harness()

    verdict = await harness.pipeline.validate_replay(
        plan=_replay(), context=_context(risk_band="high"), record_approval=False
    )

    assert verdict.override_required is True
    assert verdict.stage == "approval"
    assert verdict.approval_request is None
    pending = await harness.approvals.get_pending_approvals(
        meta=new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="user-1"),
        user_id="user-1",
    )
    assert pending.payload is not None
    assert pending.payload.value == ()


@pytest.mark.asyncio
async def test_never_ask_override_skips_approval_gate() -> None:
    """A NeverAsk override lets high risk actions proceed."""
    harness = _Harness()

    verdict = await harness.pipeline.validate_replay(
        plan=_replay(),
        context=_context(risk_band="high", user_overrides={"overrideMode": "NeverAsk"}),
    )

    assert verdict.allowed is True


@pytest.mark.asyncio
async def test_disabled_gate_still_requires_override_without_request() -> None:
    """Risk overrides hold execution even when approval requests are disabled."""
    harness = _Harness(enable_approval_gate=False)
    request = _request()

    verdict = await harness.pipeline.validate_planned(
        plan=_planned(request, confidence=0.1),
        context=ValidationContext.from_request(request),
    )

    assert verdict.override_required is True
    assert verdict.approval_request is None


def test_verdict_requiring_approval_cannot_be_allowed() -> None:
    """The verdict model rejects allowed verdicts that need approval."""
    with pytest.raises(pydantic.ValidationError):
        ValidationVerdict(allowed=True, override_required=True)
