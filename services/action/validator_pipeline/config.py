"""Pydantic settings for Validator Pipeline stages."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from services.action.validator_pipeline.component import SERVICE_COMPONENT_ID


class ValidatorPipelineSettings(BaseModel):
    """Privacy, after-hours, confidence, and gate toggles for validation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    privacy_tag: str = "PERSONAL"
    bypass_privacy_override: str = "BypassPrivacy"
    after_hours_channels: tuple[str, ...] = ("sms",)
    after_hours_start_hour: int = Field(default=21, ge=0, le=23)
    after_hours_end_hour: int = Field(default=8, ge=0, le=23)
    min_planner_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    enable_relevance_check: bool = True
    enable_approval_gate: bool = True
    record_privacy_violations: bool = True


def resolve_validator_pipeline_settings(
    settings: CrmSettings,
) -> ValidatorPipelineSettings:
    """Resolve settings from ``components.service.validator_pipeline``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=ValidatorPipelineSettings,
    )
