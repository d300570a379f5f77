"""Agent Planner Service package exports."""

from services.action.agent_planner.component import MANIFEST
from services.action.agent_planner.config import (
    AgentPlannerSettings,
    resolve_agent_planner_settings,
)
from services.action.agent_planner.domain import (
    ContextSnippet,
    PlannedExecution,
    PlanParseError,
    RemotePlan,
    RetrievalQuery,
    RetrievedContext,
)
from services.action.agent_planner.implementation import DefaultAgentPlannerService
from services.action.agent_planner.interfaces import ContextRetriever, RemotePlanner
from services.action.agent_planner.prompts import (
    PLANNER_SYSTEM_PROMPT,
    compose_planner_prompt,
    compose_system_directive,
)
from services.action.agent_planner.remote import LiteLlmRemotePlanner, parse_plan_reply
from services.action.agent_planner.retrieval import EmptyContextRetriever
from services.action.agent_planner.service import (
    AgentPlannerService,
    build_agent_planner_service,
)

__all__ = [
    "AgentPlannerService",
    "AgentPlannerSettings",
    "ContextRetriever",
    "ContextSnippet",
    "DefaultAgentPlannerService",
    "EmptyContextRetriever",
    "LiteLlmRemotePlanner",
    "MANIFEST",
    "PLANNER_SYSTEM_PROMPT",
    "PlanParseError",
    "PlannedExecution",
    "RemotePlan",
    "RemotePlanner",
    "RetrievalQuery",
    "RetrievedContext",
    "build_agent_planner_service",
    "compose_planner_prompt",
    "compose_system_directive",
    "parse_plan_reply",
    "resolve_agent_planner_settings",
]
