"""Settings for the LiteLLM adapter, read from ``components.adapter.litellm``."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.crm_shared.config import CrmSettings, resolve_component_settings
from resources.adapters.litellm.component import RESOURCE_COMPONENT_ID


class LiteLlmProviderSettings(BaseModel):
    """How to reach one provider.

    ``options`` is merged into every request (temperature, max_tokens, ...).
    Give the key inline or name the environment variable holding it, not both.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_base: str = ""
    api_key: str = ""
    api_key_env: str = ""
    timeout_seconds: float | None = Field(default=None, gt=0)
    options: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _one_key_source(self) -> "LiteLlmProviderSettings":
        if self.api_key.strip() and self.api_key_env.strip():
            raise ValueError("api_key and api_key_env are mutually exclusive")
        return self


class LiteLlmRetrySettings(BaseModel):
    """Exponential backoff between attempts, capped at ``max_backoff_seconds``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: float = Field(default=0.5, ge=0)
    max_backoff_seconds: float = Field(default=8.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the 1-based ``attempt`` failed."""
        return min(self.backoff_seconds * 2 ** (attempt - 1), self.max_backoff_seconds)


class LiteLlmAdapterSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: float = Field(default=30.0, gt=0)
    retry: LiteLlmRetrySettings = Field(default_factory=LiteLlmRetrySettings)
    providers: dict[str, LiteLlmProviderSettings] = Field(
        default_factory=lambda: {
            "openai": LiteLlmProviderSettings(api_key_env="OPENAI_API_KEY")
        }
    )

    @field_validator("providers")
    @classmethod
    def _named_providers(
        cls, value: dict[str, LiteLlmProviderSettings]
    ) -> dict[str, LiteLlmProviderSettings]:
        if any(not name.strip() for name in value):
            raise ValueError("providers keys must be non-empty")
        return value


def resolve_litellm_adapter_settings(settings: CrmSettings) -> LiteLlmAdapterSettings:
    return resolve_component_settings(
        settings=settings,
        component_id=str(RESOURCE_COMPONENT_ID),
        model=LiteLlmAdapterSettings,
    )
