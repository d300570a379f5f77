"""Unit tests for rule-based relevance criteria and reply parsing."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from services.action.action_relevance.criteria import evaluate_criteria
from services.action.action_relevance.domain import ContactContext, ScheduledAction
from services.action.action_relevance.semantic import (
    parse_approval_reply,
    parse_relevance_reply,
)

_NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def _context(**additional: object) -> ContactContext:
    return ContactContext(
        contact_id="contact-1",
        last_interaction=_NOW - timedelta(days=3),
        additional_data=dict(additional),
    )


def test_no_criteria_is_relevant_with_full_confidence() -> None:
    """An action without criteria passes the rule stage outright."""
    result = evaluate_criteria({}, _context(), trace_id="t-1", now=_NOW)

    assert result.is_relevant is True
    assert result.confidence == 1.0
    assert result.failed_criteria == ()


def test_criteria_keys_match_case_insensitively() -> None:
    """Criterion names and compared values ignore case."""
    result = evaluate_criteria(
        {"DealStatus": "open", "contactEngagement": "HIGH"},
        _context(dealStatus="Open", engagementLevel="high"),
        trace_id="t-1",
        now=_NOW,
    )

    assert result.is_relevant is True


def test_failed_criteria_reduce_confidence_proportionally() -> None:
    """Confidence is one minus the failed share of criteria."""
    result = evaluate_criteria(
        {"dealStatus": "open", "contactStatus": "active", "lastInteractionAge": 1},
        _context(dealStatus="closed", contactStatus="active"),
        trace_id="t-1",
        now=_NOW,
    )

    assert result.is_relevant is False
    assert result.failed_criteria == ("dealStatus", "lastInteractionAge")
    assert abs(result.confidence - (1.0 - 2 / 3)) < 1e-9
    assert result.reason == "Failed criteria: dealStatus, lastInteractionAge"


def test_unknown_criterion_passes() -> None:
    """Unrecognized criteria are logged and treated as passing."""
    result = evaluate_criteria(
        {"favoriteColor": "blue"}, _context(), trace_id="t-1", now=_NOW
    )

    assert result.is_relevant is True


def test_uninterpretable_criterion_fails_safe() -> None:
    """A criterion value that cannot be read counts as failed."""
    result = evaluate_criteria(
        {"lastInteractionAge": "soon"}, _context(), trace_id="t-1", now=_NOW
    )

    assert result.is_relevant is False
    assert result.failed_criteria == ("lastInteractionAge",)


def test_not_after_rejects_actions_past_their_window() -> None:
    """An elapsed action window is a fast reject."""
    passed = evaluate_criteria(
        {"notAfter": "2026-03-03T00:00:00Z"}, _context(), trace_id="t", now=_NOW
    )
    expired = evaluate_criteria(
        {"notAfter": "2026-03-01T00:00:00Z"}, _context(), trace_id="t", now=_NOW
    )

    assert passed.is_relevant is True
    assert expired.is_relevant is False


def test_missing_last_interaction_fails_age_criterion() -> None:
    """Age cannot be satisfied without any recorded interaction."""
    context = ContactContext(contact_id="contact-1")

    result = evaluate_criteria(
        {"lastInteractionAge": 30}, context, trace_id="t-1", now=_NOW
    )

    assert result.is_relevant is False


def test_parse_relevance_reply_reads_model_fields() -> None:
    """Well-formed replies populate verdict, confidence, and alternatives."""
    action = ScheduledAction(action_type="congrats_email", contact_id="c-1")
    reply = (
        "Sure, here it is:\n```json\n"
        '{"isRelevant": false, "confidenceScore": 0.85, "reason": "deal lost",'
        ' "recommendedAction": "cancel", "alternativeActions": ["check_in", ""]}'
        "\n```"
    )

    result = parse_relevance_reply(reply, action=action, trace_id="t-1")

    assert result.is_relevant is False
    assert result.confidence == 0.85
    assert result.recommended_action == "cancel"
    assert result.alternative_actions == ("check_in",)
    assert result.validation_method == "LLM"


def test_parse_relevance_reply_treats_garbage_as_not_relevant() -> None:
    """Unparsable replies are not relevant with zero confidence."""
    action = ScheduledAction(action_type="congrats_email")

    result = parse_relevance_reply("I think so?", action=action, trace_id="t-1")

    assert result.is_relevant is False
    assert result.confidence == 0.0


def test_parse_approval_reply_requires_approval_when_unparsable() -> None:
    """Approval parsing fails safe toward requiring approval."""
    assert parse_approval_reply('{"requiresApproval": false, "reason": "ok"}') == (
        False,
        "ok",
    )
    assert parse_approval_reply("maybe")[0] is True
    assert parse_approval_reply('{"requiresApproval": "no"}')[0] is True
