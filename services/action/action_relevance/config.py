"""Pydantic settings for Action Relevance Validator behavior."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from services.action.action_relevance.component import SERVICE_COMPONENT_ID
from services.action.action_relevance.domain import OverrideMode
from services.action.contracts import ModelProfileSettings

DEFAULT_ALTERNATIVE_TEMPLATES = {
    "congrats_email": "follow_up_email",
    "appointment_reminder": "reschedule_request",
    "property_recommendation": "market_update",
}


class ActionRelevanceSettings(BaseModel):
    """Immutable relevance, approval, and audit policy snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enable_llm_validation: bool = True
    minimum_confidence_score: float = Field(default=0.7, ge=0.0, le=1.0)
    max_context_age_minutes: int = Field(default=5, ge=0)
    enable_audit_logging: bool = True
    audit_max_entries: int = Field(default=10000, gt=0)
    default_action_on_uncertainty: Literal["suppress", "proceed"] = "suppress"
    override_mode: OverrideMode = OverrideMode.RISK_BASED
    tenant_override_modes: dict[str, OverrideMode] = Field(default_factory=dict)
    user_override_modes: dict[str, OverrideMode] = Field(default_factory=dict)
    user_approval_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    risk_bands: tuple[str, ...] = ("low", "medium", "high", "critical")
    approval_risk_threshold: str = "medium"
    always_require_approval_actions: tuple[str, ...] = ()
    never_require_approval_actions: tuple[str, ...] = ()
    batch_concurrency: int = Field(default=5, ge=1)
    alternative_templates: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ALTERNATIVE_TEMPLATES)
    )
    fallback_alternative: str = Field(default="manual_review", min_length=1)
    model: ModelProfileSettings = Field(default_factory=ModelProfileSettings)

    @model_validator(mode="after")
    def _validate_risk_threshold(self) -> "ActionRelevanceSettings":
        """Require the approval threshold to name a known risk band."""
        if self.approval_risk_threshold not in self.risk_bands:
            raise ValueError("approval_risk_threshold must be one of risk_bands")
        return self

    def risk_rank(self, band: str) -> int | None:
        """Return ordinal rank of ``band`` or ``None`` when unknown."""
        lowered = [item.lower() for item in self.risk_bands]
        try:
            return lowered.index(band.strip().lower())
        except ValueError:
            return None


def resolve_action_relevance_settings(settings: CrmSettings) -> ActionRelevanceSettings:
    """Resolve settings from ``components.service.action_relevance``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=ActionRelevanceSettings,
    )
