"""Domain contracts for per-request orchestration configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.orchestrator.config import OrchestratorSettings
from services.action.validator_pipeline.config import ValidatorPipelineSettings


class OrchestrationSnapshot(BaseModel):
    """Immutable settings bundle threaded through one handled request.

    ``relevance`` of ``None`` uses the relevance service's current
    configuration.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    pipeline: ValidatorPipelineSettings = Field(
        default_factory=ValidatorPipelineSettings
    )
    relevance: ActionRelevanceSettings | None = None
