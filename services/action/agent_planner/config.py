"""Pydantic settings for Agent Planner behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from services.action.agent_planner.component import SERVICE_COMPONENT_ID
from services.action.contracts import ModelProfileSettings


class AgentPlannerSettings(BaseModel):
    """Remote planner model, prompt bounds, and reply limits."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: ModelProfileSettings = Field(default_factory=ModelProfileSettings)
    max_snippets: int = Field(default=20, gt=0)
    max_snippet_chars: int = Field(default=500, gt=0)
    max_steps: int = Field(default=20, gt=0)
    default_confidence: float = Field(default=0.5, ge=0.0, le=1.0)


def resolve_agent_planner_settings(settings: CrmSettings) -> AgentPlannerSettings:
    """Resolve settings from ``components.service.agent_planner``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=AgentPlannerSettings,
    )
