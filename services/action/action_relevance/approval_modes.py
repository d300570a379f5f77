"""One approval-requirement handler per ``OverrideMode`` variant."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.action_relevance.domain import (
    ActionRelevanceResult,
    OverrideMode,
    ScheduledAction,
)


@dataclass(frozen=True)
class ApprovalQuery:
    """Inputs shared by every approval-mode handler."""

    action: ScheduledAction
    relevance: ActionRelevanceResult
    settings: ActionRelevanceSettings
    trace_id: str


ApprovalHandler = Callable[[ApprovalQuery], Awaitable[bool]]


async def _always_ask(query: ApprovalQuery) -> bool:
    del query
    return True


async def _never_ask(query: ApprovalQuery) -> bool:
    del query
    return False


async def _risk_based(query: ApprovalQuery) -> bool:
    settings = query.settings
    action_type = query.action.action_type.lower()
    if action_type in {item.lower() for item in settings.never_require_approval_actions}:
        return False
    if action_type in {item.lower() for item in settings.always_require_approval_actions}:
        return True
    rank = settings.risk_rank(query.action.risk_band)
    threshold = settings.risk_rank(settings.approval_risk_threshold)
    if rank is None or threshold is None or rank > threshold:
        return True
    return query.relevance.confidence < settings.user_approval_threshold


def build_approval_handlers(
    llm_decision: ApprovalHandler,
) -> dict[OverrideMode, ApprovalHandler]:
    """Return the handler table; every mode must have exactly one handler."""
    handlers: dict[OverrideMode, ApprovalHandler] = {
        OverrideMode.ALWAYS_ASK: _always_ask,
        OverrideMode.NEVER_ASK: _never_ask,
        OverrideMode.RISK_BASED: _risk_based,
        OverrideMode.LLM_DECISION: llm_decision,
    }
    missing = set(OverrideMode) - set(handlers)
    if missing:
        raise RuntimeError(f"override modes without handler: {sorted(missing)}")
    return handlers


def resolve_override_mode(
    settings: ActionRelevanceSettings,
    *,
    requested: str | None,
    user_id: str | None,
    tenant_id: str | None,
) -> OverrideMode:
    """Resolve the effective mode: request, user map, tenant map, default."""
    if requested:
        for mode in OverrideMode:
            if mode.value.lower() == requested.strip().lower():
                return mode
    if user_id and user_id in settings.user_override_modes:
        return settings.user_override_modes[user_id]
    if tenant_id and tenant_id in settings.tenant_override_modes:
        return settings.tenant_override_modes[tenant_id]
    return settings.override_mode
