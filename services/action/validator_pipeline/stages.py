"""Deterministic validation checks over request parameters and overrides."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from packages.crm_shared.logging import get_logger
from services.action.action_relevance.domain import ScheduledAction
from services.action.contracts import (
    ValidationContext,
    override_flag,
    parameter_datetime,
    parameter_str,
    parameter_tags,
)
from services.action.validator_pipeline.config import ValidatorPipelineSettings

_LOGGER = get_logger(__name__)

_RELEVANCE_CRITERIA_KEY = "relevanceCriteria"


def privacy_blocked(
    context: ValidationContext, settings: ValidatorPipelineSettings
) -> bool:
    """Return ``True`` when a privacy tag is present and not bypassed.

    Malformed tag parameters block as if tagged.
    """
    if override_flag(context.user_overrides, settings.bypass_privacy_override):
        return False
    try:
        tags = parameter_tags(context.parameters)
    except ValueError:
        _LOGGER.warning(
            "Malformed tags parameter treated as private: trace_id=%s",
            context.trace_id,
        )
        return True
    wanted = settings.privacy_tag.lower()
    return any(tag.lower() == wanted for tag in tags)


def is_after_hours(
    context: ValidationContext,
    settings: ValidatorPipelineSettings,
    *,
    now: datetime,
) -> bool:
    """Return ``True`` for restricted channels inside the after-hours window.

    The channel comes from the ``channel`` parameter, else the request
    channel. ``occurredAt`` supplies the UTC time; absent or unparseable
    values use ``now``.
    """
    try:
        channel = parameter_str(context.parameters, "channel") or context.channel
    except ValueError:
        channel = context.channel
    restricted = {item.lower() for item in settings.after_hours_channels}
    if channel.lower() not in restricted:
        return False

    try:
        occurred = parameter_datetime(context.parameters, "occurredAt") or now
    except ValueError:
        _LOGGER.warning(
            "Unparseable occurredAt; using current time: trace_id=%s",
            context.trace_id,
        )
        occurred = now
    return _in_window(
        occurred.hour,
        start=settings.after_hours_start_hour,
        end=settings.after_hours_end_hour,
    )


def _in_window(hour: int, *, start: int, end: int) -> bool:
    if start == end:
        return False
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def scheduled_action_from_context(
    context: ValidationContext, *, description: str, now: datetime
) -> ScheduledAction:
    """Project a validation context into the action checked for relevance."""
    criteria = _criteria(context.parameters)
    try:
        execute_at = parameter_datetime(context.parameters, "executeAt") or now
    except ValueError:
        execute_at = now
    return ScheduledAction(
        tenant_id=context.tenant_id,
        action_type=context.action_type,
        description=description,
        contact_id=context.contact_id,
        organization_id=context.organization_id,
        scheduled_by_agent="orchestrator",
        scheduled_at=now,
        execute_at=execute_at,
        parameters=dict(context.parameters),
        relevance_criteria=criteria,
        risk_band=context.risk_band,
        trace_id=context.trace_id,
    )


def _criteria(parameters: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in parameters.items():
        if key.lower() == _RELEVANCE_CRITERIA_KEY.lower() and isinstance(
            value, Mapping
        ):
            return dict(value)
    return {}
