"""Deterministic context fingerprints used as procedural-memory lookup keys."""

from __future__ import annotations

from services.action.contracts.domain import AgentRequest


def build_context_fingerprint(request: AgentRequest) -> str:
    """Return ``tenant:org:action_type:channel:industry:risk_band``.

    Absent optional attributes render as empty segments, so the result is
    stable for equal requests and never persisted on its own.
    """
    return ":".join(
        (
            request.tenant_id,
            request.organization_id or "",
            request.action_type,
            request.channel,
            request.industry or "",
            request.risk_band,
        )
    )
