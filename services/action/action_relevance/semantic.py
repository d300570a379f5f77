"""Prompt composition and reply parsing for model-backed relevance checks."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ContactContext,
    ScheduledAction,
)
from services.action.contracts import extract_json_object

RELEVANCE_SYSTEM_PROMPT = (
    "You review scheduled CRM actions before they run. Judge whether each "
    "action is still appropriate for the contact and answer only with JSON."
)

APPROVAL_SYSTEM_PROMPT = (
    "You decide whether a scheduled CRM action needs human approval before it "
    "runs. Weigh action sensitivity, assessment confidence, relationship state, "
    "automation risk, and industry compliance. Respond with JSON: "
    '{"requiresApproval": true|false, "reason": "explanation"}'
)


def compose_relevance_prompt(
    action: ScheduledAction,
    context: ContactContext,
    overrides: Mapping[str, Any] | None,
) -> str:
    """Build the semantic relevance prompt for one action."""
    overrides_section = (
        json.dumps(dict(overrides), sort_keys=True, default=str)
        if overrides
        else "No user overrides specified."
    )
    return "\n".join(
        (
            "Analyze whether the scheduled action below is still relevant.",
            "",
            "SCHEDULED ACTION:",
            f"- Type: {action.action_type}",
            f"- Description: {action.description}",
            f"- Scheduled At: {action.scheduled_at:%Y-%m-%d %H:%M}",
            f"- Execute At: {action.execute_at:%Y-%m-%d %H:%M}",
            "- Relevance Criteria: "
            + json.dumps(action.relevance_criteria, sort_keys=True, default=str),
            "",
            "CURRENT CONTACT CONTEXT:",
            context.model_dump_json(indent=2),
            "",
            "USER OVERRIDE PREFERENCES:",
            overrides_section,
            "",
            "Respond in JSON format:",
            '{"isRelevant": true|false, "confidenceScore": 0.0-1.0, '
            '"reason": "...", "recommendedAction": "proceed|reschedule|modify|cancel", '
            '"alternativeActions": ["action_type", ...]}',
        )
    )


def compose_approval_prompt(
    action: ScheduledAction,
    relevance: ActionRelevanceResult,
    context: ContactContext,
) -> str:
    """Build the approval recommendation prompt for one action."""
    return "\n".join(
        (
            "Evaluate if this action requires human approval:",
            "",
            "ACTION:",
            f"- Type: {action.action_type}",
            f"- Description: {action.description}",
            f"- Priority: {action.priority.name}",
            f"- Risk Band: {action.risk_band}",
            "",
            "RELEVANCE ASSESSMENT:",
            f"- Is Relevant: {relevance.is_relevant}",
            f"- Confidence: {relevance.confidence:.2f}",
            f"- Reason: {relevance.reason}",
            "",
            "CONTACT CONTEXT:",
            f"- Last Interaction: {context.last_interaction}",
            f"- Summary: {context.interaction_summary}",
        )
    )


def parse_relevance_reply(
    text: str, *, action: ScheduledAction, trace_id: str
) -> ActionRelevanceResult:
    """Parse a relevance reply; unparsable replies are not relevant."""
    try:
        payload = extract_json_object(text)
        is_relevant = payload["isRelevant"]
        confidence = payload["confidenceScore"]
        if not isinstance(is_relevant, bool):
            raise ValueError("isRelevant must be a boolean")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            raise ValueError("confidenceScore must be a number")
        reason = str(payload.get("reason") or "LLM validation")
        alternatives = payload.get("alternativeActions") or []
        if not isinstance(alternatives, list):
            raise ValueError("alternativeActions must be a list")
    except (KeyError, ValueError) as exc:
        return ActionRelevanceResult(
            is_relevant=False,
            confidence=0.0,
            reason="Failed to parse LLM response",
            validation_method="LLM",
            llm_reasoning=str(exc),
            action_id=action.id,
            contact_id=action.contact_id,
            action_type=action.action_type,
            trace_id=trace_id,
            checked_by="LLM-ActionRelevanceValidator",
        )

    recommended = payload.get("recommendedAction")
    return ActionRelevanceResult(
        is_relevant=is_relevant,
        confidence=min(1.0, max(0.0, float(confidence))),
        reason=reason,
        validation_method="LLM",
        llm_reasoning=reason,
        recommended_action=str(recommended) if recommended else None,
        alternative_actions=tuple(
            str(item).strip() for item in alternatives if str(item).strip()
        ),
        action_id=action.id,
        contact_id=action.contact_id,
        action_type=action.action_type,
        trace_id=trace_id,
        checked_by="LLM-ActionRelevanceValidator",
    )


def parse_approval_reply(text: str) -> tuple[bool, str]:
    """Parse an approval recommendation; unparsable replies require approval."""
    try:
        payload = extract_json_object(text)
        requires = payload["requiresApproval"]
        if not isinstance(requires, bool):
            raise ValueError("requiresApproval must be a boolean")
    except (KeyError, ValueError):
        return True, "Failed to parse LLM response; requiring approval"
    return requires, str(payload.get("reason") or "LLM recommendation")
