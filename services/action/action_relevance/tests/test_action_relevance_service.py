"""Unit tests for the Action Relevance Validator service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

import pytest

from resources.adapters.litellm import (
    AdapterChatResult,
    AdapterHealthResult,
    AdapterOverloadedError,
)
from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.action_relevance.data.repository import (
    InMemoryValidationAuditRepository,
)
from services.action.action_relevance.domain import (
    ActionRelevanceRequest,
    ActionRelevanceResult,
    ComplianceViolation,
    ContactContext,
    ScheduledAction,
)
from services.action.action_relevance.implementation import (
    DefaultActionRelevanceService,
)
from services.action.contracts import utc_now


@dataclass
class _FakeAdapter:
    """Scripted LiteLLM adapter; exceptions in ``replies`` are raised."""

    replies: list[object] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)

    async def chat(
        self,
        *,
        provider: str,
        model: str,
        prompt: str,
        system_prompt: str | None = None,
    ) -> AdapterChatResult:
        del system_prompt
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return AdapterChatResult(text=str(reply), provider=provider, model=model)

    def health(self) -> AdapterHealthResult:
        return AdapterHealthResult(adapter_ready=True, detail="ok")


@dataclass
class _FakeContactProvider:
    """Context provider returning canned snapshots; ``fail_for`` raises."""

    contexts: dict[str, ContactContext] = field(default_factory=dict)
    fail_for: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)

    async def get_contact_context(
        self, *, contact_id: str, organization_id: str | None, agent_id: str | None
    ) -> ContactContext:
        del organization_id, agent_id
        self.calls.append(contact_id)
        if contact_id in self.fail_for:
            raise RuntimeError("crm read failed")
        return self.contexts.get(contact_id, ContactContext(contact_id=contact_id))


def _service(
    *,
    adapter: _FakeAdapter | None = None,
    provider: _FakeContactProvider | None = None,
    audit: InMemoryValidationAuditRepository | None = None,
    **overrides: object,
) -> DefaultActionRelevanceService:
    return DefaultActionRelevanceService(
        settings=ActionRelevanceSettings.model_validate(overrides),
        adapter=adapter,
        contact_provider=provider,
        audit_repository=audit or InMemoryValidationAuditRepository(),
    )


def _action(**overrides: object) -> ScheduledAction:
    values: dict[str, object] = {
        "tenant_id": "tenant-a",
        "action_type": "follow_up",
        "contact_id": "contact-1",
        "risk_band": "low",
    }
    values.update(overrides)
    return ScheduledAction.model_validate(values)


def _result(confidence: float = 0.9, relevant: bool = True) -> ActionRelevanceResult:
    return ActionRelevanceResult(
        is_relevant=relevant, confidence=confidence, reason="test"
    )


_CONTEXT = ContactContext(contact_id="contact-1", additional_data={"dealStatus": "open"})


@pytest.mark.asyncio
async def test_relevant_action_is_audited() -> None:
    """A passing rule stage is recorded in the audit log."""
    service = _service()

    result = await service.validate_action_relevance(
        request=ActionRelevanceRequest(
            action=_action(relevance_criteria={"dealStatus": "open"}),
            current_context=_CONTEXT,
            trace_id="trace-1",
        )
    )

    assert result.is_relevant is True
    assert result.validation_method == "RuleBased"
    assert result.trace_id == "trace-1"
    entries = await service.get_validation_audit_log(contact_id="contact-1")
    assert [entry.result.trace_id for entry in entries] == ["trace-1"]


@pytest.mark.asyncio
async def test_rejection_always_carries_an_alternative() -> None:
    """A not-relevant verdict is never returned without an alternative."""
    service = _service()

    result = await service.validate_action_relevance(
        request=ActionRelevanceRequest(
            action=_action(relevance_criteria={"dealStatus": "closed"}),
            current_context=_CONTEXT,
        )
    )

    assert result.is_relevant is False
    assert result.alternative_actions == ("manual_review",)


@pytest.mark.asyncio
async def test_rule_stage_verdict_is_repeatable() -> None:
    """Re-validating the same snapshot yields the same decisive verdict."""
    service = _service()
    request = ActionRelevanceRequest(
        action=_action(relevance_criteria={"dealStatus": "closed"}),
        current_context=_CONTEXT,
    )

    first = await service.validate_action_relevance(request=request)
    second = await service.validate_action_relevance(request=request)

    assert (first.is_relevant, first.confidence, first.failed_criteria) == (
        second.is_relevant,
        second.confidence,
        second.failed_criteria,
    )


@pytest.mark.asyncio
async def test_semantic_stage_runs_when_rules_are_inconclusive() -> None:
    """Low rule confidence invokes the model and keeps the stronger verdict."""
    adapter = _FakeAdapter(
        replies=['{"isRelevant": true, "confidenceScore": 0.9, "reason": "fine"}']
    )
    service = _service(adapter=adapter)

    result = await service.validate_action_relevance(
        request=ActionRelevanceRequest(
            action=_action(
                relevance_criteria={"dealStatus": "open", "contactStatus": "lead"}
            ),
            current_context=_CONTEXT,
            user_overrides={"tone": "formal"},
        )
    )

    assert result.is_relevant is True
    assert result.validation_method == "LLM"
    assert result.confidence == 0.9
    assert '"tone": "formal"' in adapter.prompts[0]


@pytest.mark.asyncio
async def test_weaker_semantic_verdict_keeps_rule_result() -> None:
    """A less confident model reply leaves the rule verdict in place."""
    adapter = _FakeAdapter(
        replies=['{"isRelevant": true, "confidenceScore": 0.2, "reason": "meh"}']
    )
    service = _service(adapter=adapter)

    result = await service.validate_action_relevance(
        request=ActionRelevanceRequest(
            action=_action(
                relevance_criteria={"dealStatus": "open", "contactStatus": "lead"}
            ),
            current_context=_CONTEXT,
        )
    )

    assert result.is_relevant is False
    assert result.validation_method == "RuleBased+LLM"
    assert result.alternative_actions != ()


@pytest.mark.asyncio
async def test_semantic_failure_returns_safe_default() -> None:
    """Exhausted remote retries yield the configured safe default."""
    adapter = _FakeAdapter(replies=[AdapterOverloadedError("busy", attempts=3)])
    service = _service(adapter=adapter)

    result = await service.validate_with_llm(
        action=_action(), contact_context=_CONTEXT, trace_id="trace-9"
    )

    assert result.is_relevant is False
    assert result.validation_method == "LLM-Error"
    assert result.confidence == 0.0


@pytest.mark.asyncio
async def test_stale_context_is_refreshed() -> None:
    """Snapshots older than the configured age are re-fetched."""
    provider = _FakeContactProvider(
        contexts={
            "contact-1": ContactContext(
                contact_id="contact-1", additional_data={"dealStatus": "open"}
            )
        }
    )
    service = _service(provider=provider, max_context_age_minutes=5)
    stale = ContactContext(
        contact_id="contact-1",
        additional_data={"dealStatus": "closed"},
        retrieved_at=utc_now() - timedelta(minutes=30),
    )

    result = await service.validate_action_relevance(
        request=ActionRelevanceRequest(
            action=_action(relevance_criteria={"dealStatus": "open"}),
            current_context=stale,
        )
    )

    assert provider.calls == ["contact-1"]
    assert result.is_relevant is True


@pytest.mark.asyncio
async def test_batch_preserves_order_and_isolates_failures() -> None:
    """One failing item does not abort the remaining validations."""
    provider = _FakeContactProvider(fail_for={"contact-2"})
    service = _service(provider=provider, batch_concurrency=2)
    requests = [
        ActionRelevanceRequest(action=_action(contact_id=f"contact-{index}"))
        for index in range(1, 5)
    ]

    results = await service.validate_batch(requests=requests)

    assert len(results) == len(requests)
    assert [result.action_id for result in results] == [
        request.action.id for request in requests
    ]
    assert results[1].validation_method == "Error"
    assert results[1].is_relevant is False
    assert results[1].alternative_actions != ()
    assert all(results[index].is_relevant for index in (0, 2, 3))


@pytest.mark.asyncio
async def test_batch_of_nothing_returns_nothing() -> None:
    """An empty batch yields an empty result tuple."""
    assert await _service().validate_batch(requests=[]) == ()


def test_alternatives_follow_templates_then_suggestions() -> None:
    """Template mapping comes first, then model-suggested types."""
    service = _service()

    alternatives = service.suggest_alternative_actions(
        original_action=_action(action_type="congrats_email"),
        contact_context=_CONTEXT,
        suggested_types=("check_in", "congrats_email", "check_in"),
    )

    assert [item.action_type for item in alternatives] == [
        "follow_up_email",
        "check_in",
    ]
    assert all(item.contact_id == "contact-1" for item in alternatives)


def test_alternatives_fall_back_to_manual_review() -> None:
    """Unknown action types still get one alternative."""
    alternatives = _service().suggest_alternative_actions(
        original_action=_action(action_type="birthday_card"),
        contact_context=_CONTEXT,
    )

    assert [item.action_type for item in alternatives] == ["manual_review"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("mode", "expected"),
    [("AlwaysAsk", True), ("NeverAsk", False)],
)
async def test_requires_approval_fixed_modes(mode: str, expected: bool) -> None:
    """Fixed modes ignore risk and confidence."""
    service = _service(override_mode=mode)

    required = await service.requires_approval(
        action=_action(risk_band="critical"),
        relevance=_result(confidence=0.1),
        user_id="user-1",
    )

    assert required is expected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("risk_band", "confidence", "expected"),
    [
        ("low", 0.95, False),
        ("medium", 0.95, False),
        ("high", 0.95, True),
        ("unknown", 0.95, True),
        ("low", 0.5, True),
    ],
)
async def test_requires_approval_risk_based(
    risk_band: str, confidence: float, expected: bool
) -> None:
    """Risk above threshold, unknown bands, or low confidence require approval."""
    service = _service(override_mode="RiskBased")

    required = await service.requires_approval(
        action=_action(risk_band=risk_band),
        relevance=_result(confidence=confidence),
        user_id="user-1",
    )

    assert required is expected


@pytest.mark.asyncio
async def test_requires_approval_action_lists_take_precedence() -> None:
    """Never and always lists short-circuit the risk comparison."""
    service = _service(
        never_require_approval_actions=("log_note",),
        always_require_approval_actions=("wire_transfer",),
    )

    assert not await service.requires_approval(
        action=_action(action_type="log_note", risk_band="critical"),
        relevance=_result(confidence=0.1),
        user_id="user-1",
    )
    assert await service.requires_approval(
        action=_action(action_type="wire_transfer"),
        relevance=_result(confidence=1.0),
        user_id="user-1",
    )


@pytest.mark.asyncio
async def test_override_mode_resolution_order() -> None:
    """Request override beats user map, which beats tenant map."""
    service = _service(
        override_mode="AlwaysAsk",
        tenant_override_modes={"tenant-a": "NeverAsk"},
        user_override_modes={"user-2": "AlwaysAsk"},
    )

    assert not await service.requires_approval(
        action=_action(), relevance=_result(), user_id="user-1"
    )
    assert await service.requires_approval(
        action=_action(), relevance=_result(), user_id="user-2"
    )
    assert not await service.requires_approval(
        action=_action(),
        relevance=_result(),
        user_id="user-2",
        overrides={"overrideMode": "neverask"},
    )


@pytest.mark.asyncio
async def test_llm_decision_mode_delegates_and_fails_safe() -> None:
    """Model recommendation is honored; model failure requires approval."""
    adapter = _FakeAdapter(
        replies=[
            '{"requiresApproval": false, "reason": "routine"}',
            AdapterOverloadedError("busy", attempts=3),
        ]
    )
    service = _service(adapter=adapter, override_mode="LLMDecision")

    assert not await service.requires_approval(
        action=_action(), relevance=_result(), user_id="user-1"
    )
    assert await service.requires_approval(
        action=_action(), relevance=_result(), user_id="user-1"
    )


@pytest.mark.asyncio
async def test_audit_log_filters_and_caps() -> None:
    """Audit filters combine and the in-memory log keeps the newest entries."""
    service = _service(audit=InMemoryValidationAuditRepository(max_entries=2))
    for action_type in ("follow_up", "Follow_Up", "market_update"):
        await service.validate_action_relevance(
            request=ActionRelevanceRequest(
                action=_action(action_type=action_type), current_context=_CONTEXT
            )
        )

    everything = await service.get_validation_audit_log()
    follow_ups = await service.get_validation_audit_log(action_type="FOLLOW_UP")
    future = await service.get_validation_audit_log(
        start=utc_now() + timedelta(days=1)
    )

    assert len(everything) == 2
    assert everything[0].result.checked_at >= everything[1].result.checked_at
    assert [entry.result.action_type for entry in follow_ups] == ["Follow_Up"]
    assert future == ()



@pytest.mark.asyncio
async def test_direct_criteria_and_model_checks_are_audited() -> None:
    """Each lower-level validation call appends its own audit entry."""
    adapter = _FakeAdapter(
        replies=['{"isRelevant": true, "confidenceScore": 0.8, "reason": "Engaged"}']
    )
    service = _service(adapter=adapter)

    criteria = await service.evaluate_relevance_criteria(
        criteria={"dealStatus": "open"},
        contact_context=_CONTEXT,
        trace_id="trace-rules",
        tenant_id="tenant-a",
    )
    semantic = await service.validate_with_llm(
        action=_action(), contact_context=_CONTEXT, trace_id="trace-llm"
    )

    entries = await service.get_validation_audit_log(contact_id="contact-1")
    assert {entry.result.trace_id for entry in entries} == {"trace-rules", "trace-llm"}
    assert {entry.tenant_id for entry in entries} == {"tenant-a"}
    assert criteria.is_relevant is True
    assert semantic.action_type == "follow_up"


@pytest.mark.asyncio
async def test_disabled_audit_logging_skips_entries() -> None:
    """Turning audit logging off records nothing."""
    service = _service(enable_audit_logging=False)

    await service.is_action_still_relevant(action=_action(), contact_context=_CONTEXT)

    assert await service.get_validation_audit_log() == ()


@pytest.mark.asyncio
async def test_configuration_snapshot_swap() -> None:
    """Updating configuration replaces the snapshot used by later calls."""
    service = _service(override_mode="NeverAsk")
    updated = service.get_configuration().model_copy(
        update={"override_mode": "AlwaysAsk"}
    )
    service.update_configuration(
        settings=ActionRelevanceSettings.model_validate(updated.model_dump())
    )

    assert await service.requires_approval(
        action=_action(), relevance=_result(), user_id="user-1"
    )


@pytest.mark.asyncio
async def test_compliance_violations_are_tenant_scoped() -> None:
    """Violations are listed per tenant, newest first."""
    service = _service()
    await service.record_compliance_violation(
        violation=ComplianceViolation(
            tenant_id="tenant-a",
            violation_type="relevance_rejected",
            agent_type="nba",
            action_type="follow_up",
            trace_id="trace-1",
        )
    )

    assert len(await service.list_compliance_violations(tenant_id="tenant-a")) == 1
    assert await service.list_compliance_violations(tenant_id="tenant-b") == ()
