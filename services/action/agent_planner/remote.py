"""LiteLLM-backed remote planner and reply parsing."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from resources.adapters.litellm import LiteLlmAdapter
from services.action.agent_planner.config import AgentPlannerSettings
from services.action.agent_planner.domain import PlanParseError, RemotePlan
from services.action.agent_planner.interfaces import RemotePlanner
from services.action.contracts import extract_json_object
from services.action.procedural_memory.domain import ProcedureStep


class LiteLlmRemotePlanner(RemotePlanner):
    """Remote planner calling the shared LiteLLM adapter."""

    def __init__(
        self, *, adapter: LiteLlmAdapter, settings: AgentPlannerSettings
    ) -> None:
        self._adapter = adapter
        self._settings = settings

    async def propose(self, *, prompt: str, system_prompt: str) -> RemotePlan:
        reply = await self._adapter.chat(
            provider=self._settings.model.provider,
            model=self._settings.model.model,
            prompt=prompt,
            system_prompt=system_prompt,
        )
        return parse_plan_reply(
            reply.text,
            max_steps=self._settings.max_steps,
            default_confidence=self._settings.default_confidence,
        )


def parse_plan_reply(
    text: str, *, max_steps: int = 20, default_confidence: float = 0.5
) -> RemotePlan:
    """Decode ``{"steps": [...], "confidence": x}`` from one model reply.

    Raises ``PlanParseError`` for malformed replies, empty plans, and plans
    longer than ``max_steps``. A missing confidence uses
    ``default_confidence``; out-of-range values are clamped.
    """
    try:
        parsed = extract_json_object(text)
    except ValueError as exc:
        raise PlanParseError(str(exc)) from None

    raw_steps = parsed.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise PlanParseError("planner reply has no steps")
    if len(raw_steps) > max_steps:
        raise PlanParseError(f"planner reply exceeds {max_steps} steps")
    try:
        steps = tuple(ProcedureStep.model_validate(item) for item in raw_steps)
    except ValidationError as exc:
        raise PlanParseError(
            f"planner step is malformed: {exc.error_count()} error(s)"
        ) from None

    return RemotePlan(
        steps=steps,
        confidence=_confidence(parsed.get("confidence"), default=default_confidence),
    )


def _confidence(value: Any, *, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return min(1.0, max(0.0, float(value)))
