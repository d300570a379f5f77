"""Authoritative in-process Python API for Agent Planner Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.crm_shared.config import CrmSettings
from resources.adapters.litellm import LiteLlmAdapter
from services.action.agent_planner.domain import PlannedExecution
from services.action.agent_planner.interfaces import ContextRetriever, RemotePlanner
from services.action.contracts import AgentRequest
from services.action.procedural_memory.interfaces import ProcedureExecutor


class AgentPlannerService(ABC):
    """Public API for synthesizing new plans through a remote planner."""

    @abstractmethod
    async def plan(self, *, request: AgentRequest) -> PlannedExecution:
        """Return a deferred execution; remote failures yield a failed plan."""


def build_agent_planner_service(
    *,
    settings: CrmSettings,
    adapter: LiteLlmAdapter | None = None,
    remote_planner: RemotePlanner | None = None,
    retriever: ContextRetriever | None = None,
    executor: ProcedureExecutor | None = None,
) -> AgentPlannerService:
    """Build default Agent Planner Service implementation."""
    from services.action.agent_planner.implementation import (
        DefaultAgentPlannerService,
    )

    return DefaultAgentPlannerService.from_settings(
        settings,
        adapter=adapter,
        remote_planner=remote_planner,
        retriever=retriever,
        executor=executor,
    )
