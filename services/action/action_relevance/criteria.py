"""Rule-based relevance criteria evaluation.

Criterion keys are matched case-insensitively. Unknown criteria pass with a
warning; a criterion whose value cannot be interpreted fails.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from packages.crm_shared.logging import get_logger
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    ContactContext,
)
from services.action.contracts import parameter_datetime, utc_now

_LOGGER = get_logger(__name__)

CriterionCheck = Callable[[Any, ContactContext, datetime], bool]


class CriterionEvaluationError(ValueError):
    """Raised when a criterion value or context field cannot be interpreted."""


def evaluate_criteria(
    criteria: Mapping[str, Any],
    context: ContactContext,
    *,
    trace_id: str,
    now: datetime | None = None,
) -> ActionRelevanceResult:
    """Evaluate every criterion and return a rule-based verdict."""
    evaluated_at = now or utc_now()
    failed: list[str] = []
    for key, expected in criteria.items():
        if not _criterion_passes(key, expected, context, evaluated_at, trace_id):
            failed.append(key)
            _LOGGER.debug(
                "Relevance criterion failed: criterion=%s trace_id=%s", key, trace_id
            )

    if not failed:
        return ActionRelevanceResult(
            is_relevant=True,
            confidence=1.0,
            reason="All relevance criteria passed",
            contact_id=context.contact_id,
            trace_id=trace_id,
            checked_at=evaluated_at,
        )
    return ActionRelevanceResult(
        is_relevant=False,
        confidence=max(0.0, 1.0 - len(failed) / len(criteria)),
        reason=f"Failed criteria: {', '.join(failed)}",
        failed_criteria=tuple(failed),
        contact_id=context.contact_id,
        trace_id=trace_id,
        checked_at=evaluated_at,
    )


def _criterion_passes(
    key: str,
    expected: Any,
    context: ContactContext,
    now: datetime,
    trace_id: str,
) -> bool:
    check = _CHECKS.get(key.strip().lower())
    if check is None:
        _LOGGER.warning(
            "Unknown relevance criterion: criterion=%s trace_id=%s", key, trace_id
        )
        return True
    try:
        return check(expected, context, now)
    except (TypeError, ValueError) as exc:
        _LOGGER.warning(
            "Relevance criterion could not be evaluated: criterion=%s "
            "trace_id=%s error=%s",
            key,
            trace_id,
            exc,
        )
        return False


def _additional(context: ContactContext, name: str) -> Any:
    for key, value in context.additional_data.items():
        if key.lower() == name.lower():
            return value
    return None


def _same_text(expected: Any, actual: Any) -> bool:
    if actual is None:
        return False
    if isinstance(expected, (list, tuple, set, frozenset)):
        return any(str(item).lower() == str(actual).lower() for item in expected)
    return str(expected).strip().lower() == str(actual).strip().lower()


def _deal_status(expected: Any, context: ContactContext, now: datetime) -> bool:
    del now
    return _same_text(expected, _additional(context, "dealStatus"))


def _contact_engagement(expected: Any, context: ContactContext, now: datetime) -> bool:
    del now
    return _same_text(expected, _additional(context, "engagementLevel"))


def _contact_status(expected: Any, context: ContactContext, now: datetime) -> bool:
    del now
    return _same_text(expected, _additional(context, "contactStatus"))


def _last_interaction_age(
    expected: Any, context: ContactContext, now: datetime
) -> bool:
    if isinstance(expected, bool):
        raise CriterionEvaluationError("lastInteractionAge must be a number of days")
    max_days = float(expected)
    if context.last_interaction is None:
        return False
    age_days = (now - context.last_interaction).total_seconds() / 86400.0
    return age_days <= max_days


def _not_after(expected: Any, context: ContactContext, now: datetime) -> bool:
    del context
    deadline = parameter_datetime({"notAfter": expected}, "notAfter")
    if deadline is None:
        raise CriterionEvaluationError("notAfter requires a timestamp")
    return now <= deadline


_CHECKS: dict[str, CriterionCheck] = {
    "dealstatus": _deal_status,
    "contactengagement": _contact_engagement,
    "contactstatus": _contact_status,
    "lastinteractionage": _last_interaction_age,
    "notafter": _not_after,
}
