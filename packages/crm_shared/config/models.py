"""Settings models for the CRM action runtime.

Component-specific settings are not modelled here. They live as free-form
mappings under ``components.<kind>.<name>`` and each component validates its
own subtree with ``resolve_component_settings``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "crm" / "crm.yaml"

_COMPONENT_KINDS = ("service", "adapter", "substrate")

TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "crm-agent-core"
    environment: str = "dev"


class PublicApiOtelSettings(BaseModel):
    """Tracer, meter and instrument names used by public API telemetry."""

    tracer_name: str = "crm.public_api"
    meter_name: str = "crm.public_api"
    metric_public_api_calls_total: str = "crm_public_api_calls_total"
    metric_public_api_duration_ms: str = "crm_public_api_duration_ms"
    metric_public_api_errors_total: str = "crm_public_api_errors_total"


class PublicApiObservabilitySettings(BaseModel):
    otel: PublicApiOtelSettings = Field(default_factory=PublicApiOtelSettings)


class ObservabilitySettings(BaseModel):
    public_api: PublicApiObservabilitySettings = Field(
        default_factory=PublicApiObservabilitySettings
    )


class ComponentNamespaceSettings(BaseModel):
    """``components.<kind>``: one free-form mapping per component name."""

    model_config = ConfigDict(extra="allow")


class ComponentsSettings(BaseModel):
    """``components`` tree, grouped by component kind.

    ``components.service_orchestrator`` is rejected in favour of
    ``components.service.orchestrator`` so environment variables and YAML
    resolve to the same place.
    """

    model_config = ConfigDict(extra="allow")

    service: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    adapter: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    substrate: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )

    @model_validator(mode="before")
    @classmethod
    def _require_grouped_keys(cls, value: Any) -> Any:
        if isinstance(value, dict):
            for key in value:
                kind, _, name = str(key).partition("_")
                if kind in _COMPONENT_KINDS and name:
                    raise ValueError(
                        f"components.{key} is invalid; use components.{kind}.{name} instead"
                    )
        return value


class CrmSettings(BaseSettings):
    """Root settings.

    Sources, highest precedence first: constructor arguments, ``CRM_``
    environment variables (``__`` separates nesting levels), the YAML file
    at ``_config_path``, then model defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="CRM_",
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    _config_path: ClassVar[Path] = DEFAULT_CONFIG_PATH

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_settings = YamlConfigSettingsSource(
            settings_cls, yaml_file=cls._config_path, yaml_file_encoding="utf-8"
        )
        return init_settings, env_settings, yaml_settings


def resolve_component_settings(
    *,
    settings: CrmSettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Validate one component's subtree with ``model``.

    ``service_approval_workflow`` reads ``components.service.approval_workflow``;
    an absent subtree yields the model defaults.
    """
    kind, _, name = component_id.partition("_")
    if kind not in _COMPONENT_KINDS or not name:
        raise ValueError(f"unsupported component id: {component_id}")

    namespace = settings.components.model_dump(mode="python").get(kind) or {}
    if not isinstance(namespace, dict):
        raise TypeError(f"components.{kind} must resolve to an object mapping")
    subtree = namespace.get(name) or {}
    if not isinstance(subtree, dict):
        raise TypeError(f"components.{kind}.{name} must resolve to an object mapping")
    return model.model_validate(subtree)
