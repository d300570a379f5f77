"""Pydantic settings for Orchestrator decision flow."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from services.action.orchestrator.component import SERVICE_COMPONENT_ID


class OrchestratorSettings(BaseModel):
    """Replay and fallback toggles for one orchestration snapshot.

    ``use_industry_filter`` of ``None`` defers to procedural memory settings.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enable_replay: bool = True
    fallback_on_blocked_replay: bool = True
    use_industry_filter: bool | None = None


def resolve_orchestrator_settings(settings: CrmSettings) -> OrchestratorSettings:
    """Resolve settings from ``components.service.orchestrator``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=OrchestratorSettings,
    )
