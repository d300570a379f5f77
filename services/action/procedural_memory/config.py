"""Pydantic settings for Procedural Memory Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from services.action.procedural_memory.component import SERVICE_COMPONENT_ID


class ProceduralMemorySettings(BaseModel):
    """Lookup, versioning, and trace-redaction settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    use_industry_filter: bool = True
    replay_rings: tuple[str, ...] = ("ga", "canary")
    upsert_max_attempts: int = Field(default=3, ge=1)
    max_trace_list_limit: int = Field(default=500, gt=0)
    redacted_keys: tuple[str, ...] = (
        "email",
        "phone",
        "phoneNumber",
        "address",
        "ssn",
        "password",
        "message",
        "body",
        "notes",
    )
    redaction_mask: str = "[REDACTED]"


def resolve_procedural_memory_settings(
    settings: CrmSettings,
) -> ProceduralMemorySettings:
    """Resolve settings from ``components.service.procedural_memory``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=ProceduralMemorySettings,
    )
