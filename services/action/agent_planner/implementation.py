"""Concrete Agent Planner Service bridging retrieval and the remote planner."""

from __future__ import annotations

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.errors import ErrorDetail, codes, validation_error
from packages.crm_shared.logging import get_logger, public_api_instrumented
from resources.adapters.litellm import (
    AdapterError,
    LiteLlmAdapter,
    LiteLlmLibraryAdapter,
    resolve_litellm_adapter_settings,
)
from services.action.agent_planner.component import SERVICE_COMPONENT_ID
from services.action.agent_planner.config import (
    AgentPlannerSettings,
    resolve_agent_planner_settings,
)
from services.action.agent_planner.domain import (
    PlannedExecution,
    PlanParseError,
    RetrievalQuery,
    RetrievedContext,
)
from services.action.agent_planner.interfaces import ContextRetriever, RemotePlanner
from services.action.agent_planner.prompts import (
    compose_planner_prompt,
    compose_system_directive,
)
from services.action.agent_planner.remote import LiteLlmRemotePlanner
from services.action.agent_planner.retrieval import EmptyContextRetriever
from services.action.agent_planner.service import AgentPlannerService
from services.action.contracts import AgentRequest, adapter_error_to_detail
from services.action.procedural_memory.executor import DryRunProcedureExecutor
from services.action.procedural_memory.interfaces import ProcedureExecutor

_LOGGER = get_logger(__name__)


class DefaultAgentPlannerService(AgentPlannerService):
    """Default planner over a context retriever and a remote planner."""

    def __init__(
        self,
        *,
        settings: AgentPlannerSettings,
        remote_planner: RemotePlanner,
        retriever: ContextRetriever | None = None,
        executor: ProcedureExecutor | None = None,
    ) -> None:
        self._settings = settings
        self._remote = remote_planner
        self._retriever = retriever or EmptyContextRetriever()
        self._executor = executor or DryRunProcedureExecutor()

    @classmethod
    def from_settings(
        cls,
        settings: CrmSettings,
        *,
        adapter: LiteLlmAdapter | None = None,
        remote_planner: RemotePlanner | None = None,
        retriever: ContextRetriever | None = None,
        executor: ProcedureExecutor | None = None,
    ) -> "DefaultAgentPlannerService":
        """Build planner from typed root runtime settings."""
        planner_settings = resolve_agent_planner_settings(settings)
        if remote_planner is None:
            remote_planner = LiteLlmRemotePlanner(
                adapter=adapter
                or LiteLlmLibraryAdapter(
                    settings=resolve_litellm_adapter_settings(settings)
                ),
                settings=planner_settings,
            )
        return cls(
            settings=planner_settings,
            remote_planner=remote_planner,
            retriever=retriever,
            executor=executor,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def plan(self, *, request: AgentRequest) -> PlannedExecution:
        context = await self._retrieve(request)
        prompt = compose_planner_prompt(
            request,
            context,
            max_snippets=self._settings.max_snippets,
            max_snippet_chars=self._settings.max_snippet_chars,
        )
        try:
            proposal = await self._remote.propose(
                prompt=prompt, system_prompt=compose_system_directive(context)
            )
        except AdapterError as exc:
            error = adapter_error_to_detail(
                exc,
                permanent_code=codes.PLANNER_FAILURE,
                metadata={"trace_id": request.trace_id},
            )
            return self._failed(request, error)
        except PlanParseError as exc:
            error = validation_error(
                f"planner reply rejected: {exc}",
                code=codes.PLANNER_FAILURE,
                metadata={"trace_id": request.trace_id},
            )
            return self._failed(request, error)

        return PlannedExecution(
            trace_id=request.trace_id,
            request=request,
            steps=proposal.steps,
            confidence=proposal.confidence,
            executor=self._executor,
        )

    async def _retrieve(self, request: AgentRequest) -> RetrievedContext:
        """Fetch planning context, degrading to an empty context on failure."""
        try:
            return await self._retriever.retrieve(
                query=RetrievalQuery.from_request(request)
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Context retrieval failed; planning without context: "
                "trace_id=%s tenant_id=%s error_type=%s",
                request.trace_id,
                request.tenant_id,
                type(exc).__name__,
            )
            return RetrievedContext()

    def _failed(self, request: AgentRequest, error: ErrorDetail) -> PlannedExecution:
        _LOGGER.warning(
            "Planning failed: trace_id=%s tenant_id=%s action_type=%s code=%s",
            request.trace_id,
            request.tenant_id,
            request.action_type,
            error.code,
        )
        return PlannedExecution(
            trace_id=request.trace_id, request=request, error=error
        )
