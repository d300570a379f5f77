"""Validator Pipeline Service package exports."""

from services.action.validator_pipeline.component import MANIFEST
from services.action.validator_pipeline.config import (
    ValidatorPipelineSettings,
    resolve_validator_pipeline_settings,
)
from services.action.validator_pipeline.domain import (
    ValidationStage,
    ValidationVerdict,
)
from services.action.validator_pipeline.implementation import (
    DefaultValidatorPipelineService,
)
from services.action.validator_pipeline.service import (
    ValidatorPipelineService,
    build_validator_pipeline_service,
)
from services.action.validator_pipeline.stages import (
    is_after_hours,
    privacy_blocked,
    scheduled_action_from_context,
)

__all__ = [
    "DefaultValidatorPipelineService",
    "MANIFEST",
    "ValidationStage",
    "ValidationVerdict",
    "ValidatorPipelineService",
    "ValidatorPipelineSettings",
    "build_validator_pipeline_service",
    "is_after_hours",
    "privacy_blocked",
    "resolve_validator_pipeline_settings",
    "scheduled_action_from_context",
]
