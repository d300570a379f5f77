"""Authoritative in-process Python API for Orchestrator Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from packages.crm_shared.config import CrmSettings
from services.action.agent_planner.service import AgentPlannerService
from services.action.contracts import AgentRequest, ExecutionResult
from services.action.orchestrator.domain import OrchestrationSnapshot
from services.action.procedural_memory.interfaces import ProcedureExecutor
from services.action.procedural_memory.service import ProceduralMemoryService
from services.action.validator_pipeline.service import ValidatorPipelineService


class OrchestratorService(ABC):
    """Public API deciding between replay and planning for agent requests."""

    @abstractmethod
    async def handle(
        self,
        *,
        request: AgentRequest,
        snapshot: OrchestrationSnapshot | None = None,
    ) -> ExecutionResult:
        """Replay, plan, validate, and execute one request.

        Only cancellation escapes; every other failure is a failed result.
        """

    @abstractmethod
    async def handle_payload(
        self,
        *,
        payload: Mapping[str, Any],
        snapshot: OrchestrationSnapshot | None = None,
    ) -> ExecutionResult:
        """Parse an untrusted mapping, then handle it like ``handle``."""


def build_orchestrator_service(
    *,
    settings: CrmSettings,
    procedural_memory: ProceduralMemoryService | None = None,
    planner: AgentPlannerService | None = None,
    validator: ValidatorPipelineService | None = None,
    executor: ProcedureExecutor | None = None,
) -> OrchestratorService:
    """Build default Orchestrator Service implementation."""
    from services.action.orchestrator.implementation import (
        DefaultOrchestratorService,
    )

    return DefaultOrchestratorService.from_settings(
        settings,
        procedural_memory=procedural_memory,
        planner=planner,
        validator=validator,
        executor=executor,
    )
