"""Orchestrator Service package exports."""

from services.action.orchestrator.component import MANIFEST
from services.action.orchestrator.config import (
    OrchestratorSettings,
    resolve_orchestrator_settings,
)
from services.action.orchestrator.domain import OrchestrationSnapshot
from services.action.orchestrator.implementation import DefaultOrchestratorService
from services.action.orchestrator.service import (
    OrchestratorService,
    build_orchestrator_service,
)

__all__ = [
    "DefaultOrchestratorService",
    "MANIFEST",
    "OrchestrationSnapshot",
    "OrchestratorService",
    "OrchestratorSettings",
    "build_orchestrator_service",
    "resolve_orchestrator_settings",
]
