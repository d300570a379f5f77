"""Concrete Orchestrator: replay when safe, otherwise plan, always validate."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.errors import (
    codes,
    internal_error,
    policy_error,
    validation_error,
)
from packages.crm_shared.ids import generate_ulid_str
from packages.crm_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from services.action.action_relevance.config import resolve_action_relevance_settings
from services.action.agent_planner.domain import PlannedExecution
from services.action.agent_planner.service import (
    AgentPlannerService,
    build_agent_planner_service,
)
from services.action.contracts import (
    AgentRequest,
    DecisionPath,
    ExecutionResult,
    MalformedRequestError,
    ValidationContext,
    parse_agent_request,
)
from services.action.orchestrator.component import SERVICE_COMPONENT_ID
from services.action.orchestrator.config import resolve_orchestrator_settings
from services.action.orchestrator.domain import OrchestrationSnapshot
from services.action.orchestrator.service import OrchestratorService
from services.action.procedural_memory.domain import (
    ProcedureLookup,
    ProcedureTrace,
    TraceOutcome,
)
from services.action.procedural_memory.executor import DryRunProcedureExecutor
from services.action.procedural_memory.interfaces import ProcedureExecutor
from services.action.procedural_memory.service import (
    ProceduralMemoryService,
    build_procedural_memory_service,
)
from services.action.validator_pipeline.config import (
    resolve_validator_pipeline_settings,
)
from services.action.validator_pipeline.domain import ValidationVerdict
from services.action.validator_pipeline.service import (
    ValidatorPipelineService,
    build_validator_pipeline_service,
)

_LOGGER = get_logger(__name__)


@dataclass
class _Decision:
    """Mutable telemetry collected while one request is handled."""

    path: DecisionPath | None = None
    replay: bool = False
    fallback: bool = False
    override_required: bool = False
    procedure_id: str | None = None
    procedure_version: int | None = None


class DefaultOrchestratorService(OrchestratorService):
    """Default orchestrator over procedural memory, planner, and validator."""

    def __init__(
        self,
        *,
        procedural_memory: ProceduralMemoryService,
        planner: AgentPlannerService,
        validator: ValidatorPipelineService,
        executor: ProcedureExecutor | None = None,
        snapshot: OrchestrationSnapshot | None = None,
    ) -> None:
        self._memory = procedural_memory
        self._planner = planner
        self._validator = validator
        self._executor = executor or DryRunProcedureExecutor()
        self._snapshot = snapshot or OrchestrationSnapshot()

    @classmethod
    def from_settings(
        cls,
        settings: CrmSettings,
        *,
        procedural_memory: ProceduralMemoryService | None = None,
        planner: AgentPlannerService | None = None,
        validator: ValidatorPipelineService | None = None,
        executor: ProcedureExecutor | None = None,
    ) -> "DefaultOrchestratorService":
        """Build orchestrator and any missing collaborators from settings."""
        executor = executor or DryRunProcedureExecutor()
        return cls(
            procedural_memory=procedural_memory
            or build_procedural_memory_service(settings=settings),
            planner=planner
            or build_agent_planner_service(settings=settings, executor=executor),
            validator=validator or build_validator_pipeline_service(settings=settings),
            executor=executor,
            snapshot=OrchestrationSnapshot(
                orchestrator=resolve_orchestrator_settings(settings),
                pipeline=resolve_validator_pipeline_settings(settings),
                relevance=resolve_action_relevance_settings(settings),
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def handle(
        self,
        *,
        request: AgentRequest,
        snapshot: OrchestrationSnapshot | None = None,
    ) -> ExecutionResult:
        resolved = snapshot or self._snapshot
        decision = _Decision()
        started = time.perf_counter()
        with log_context(
            {
                fields.TRACE_ID: request.trace_id,
                fields.TENANT_ID: request.tenant_id,
                fields.ORGANIZATION_ID: request.organization_id,
            }
        ):
            try:
                result = await self._decide(request, resolved, decision)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.exception(
                    "Orchestration failed: trace_id=%s tenant_id=%s",
                    request.trace_id,
                    request.tenant_id,
                )
                result = ExecutionResult(
                    success=False,
                    message="Unexpected orchestration failure",
                    error=internal_error(
                        str(exc) or "unexpected exception",
                        code=codes.UNEXPECTED_EXCEPTION,
                        metadata={
                            "trace_id": request.trace_id,
                            "exception_type": type(exc).__name__,
                        },
                    ),
                )
            duration_ms = (time.perf_counter() - started) * 1000.0
            self._log_decision(request, decision, duration_ms)
        return result.model_copy(
            update={
                "trace_id": request.trace_id,
                "decision_path": decision.path,
                "override_required": result.override_required
                or decision.override_required,
                "duration_ms": duration_ms,
            }
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def handle_payload(
        self,
        *,
        payload: Mapping[str, Any],
        snapshot: OrchestrationSnapshot | None = None,
    ) -> ExecutionResult:
        try:
            request = parse_agent_request(payload)
        except MalformedRequestError as exc:
            trace_id = _payload_trace_id(payload)
            _LOGGER.warning(
                "Rejected malformed agent request: trace_id=%s fields=%s",
                trace_id,
                ",".join(exc.fields),
            )
            return ExecutionResult(
                success=False,
                message=str(exc),
                error=validation_error(
                    str(exc),
                    code=codes.MALFORMED_REQUEST,
                    metadata={"fields": ",".join(exc.fields), "trace_id": trace_id},
                ),
                trace_id=trace_id,
            )
        return await self.handle(request=request, snapshot=snapshot)

    async def _decide(
        self,
        request: AgentRequest,
        snapshot: OrchestrationSnapshot,
        decision: _Decision,
    ) -> ExecutionResult:
        """Try a replay first; blocked replays fall back to planning."""
        lookup = ProcedureLookup.from_request(request)
        context = ValidationContext.from_request(request)

        replay = None
        if snapshot.orchestrator.enable_replay:
            replay = await self._memory.try_find(
                lookup=lookup,
                use_industry_filter=snapshot.orchestrator.use_industry_filter,
            )

        if replay is not None:
            decision.replay = True
            decision.procedure_id = replay.procedure_id
            decision.procedure_version = replay.version
            fallback = snapshot.orchestrator.fallback_on_blocked_replay
            # Approvals are only recorded for the path that will be returned.
            verdict = await self._validator.validate_replay(
                plan=replay,
                context=context,
                settings=snapshot.pipeline,
                relevance_settings=snapshot.relevance,
                record_approval=not fallback,
            )
            if verdict.allowed:
                decision.path = "replay"
                return await self._executor.execute(
                    request=request, steps=replay.steps, trace_id=request.trace_id
                )
            if not fallback:
                decision.path = "replay"
                if verdict.override_required:
                    decision.override_required = True
                    return _approval_required(verdict)
                return _rejected(verdict)
            _LOGGER.info(
                "Replay blocked; falling back to planning: trace_id=%s "
                "procedure_id=%s stage=%s override_required=%s",
                request.trace_id,
                replay.procedure_id,
                verdict.stage,
                verdict.override_required,
            )
            decision.fallback = True

        return await self._plan(request, context, lookup, snapshot, decision)

    async def _plan(
        self,
        request: AgentRequest,
        context: ValidationContext,
        lookup: ProcedureLookup,
        snapshot: OrchestrationSnapshot,
        decision: _Decision,
    ) -> ExecutionResult:
        planned = await self._planner.plan(request=request)
        await self._capture_trace(request, lookup, planned)
        decision.path = "fallback" if decision.fallback else "planned"

        verdict = await self._validator.validate_planned(
            plan=planned,
            context=context,
            settings=snapshot.pipeline,
            relevance_settings=snapshot.relevance,
        )
        if planned.error is not None:
            return ExecutionResult(
                success=False,
                message=f"Planning failed: {planned.error.message}",
                error=planned.error,
            )
        if verdict.override_required:
            decision.override_required = True
            return _approval_required(verdict)
        if not verdict.allowed:
            return _rejected(verdict)
        return await planned.execute()

    async def _capture_trace(
        self,
        request: AgentRequest,
        lookup: ProcedureLookup,
        planned: PlannedExecution,
    ) -> None:
        """Persist one trace per planner call; failures abandon the write."""
        trace = ProcedureTrace(
            trace_id=request.trace_id,
            tenant_id=request.tenant_id,
            organization_id=request.organization_id,
            action_type=request.action_type,
            channel=request.channel,
            fingerprint=lookup.fingerprint,
            redacted_inputs=dict(request.parameters),
            outcome=_trace_outcome(planned),
            step_count=len(planned.steps),
            error_code=None if planned.error is None else planned.error.code,
        )
        try:
            await self._memory.capture_trace(trace=trace)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Trace capture abandoned: trace_id=%s error_type=%s",
                request.trace_id,
                type(exc).__name__,
            )

    def _log_decision(
        self, request: AgentRequest, decision: _Decision, duration_ms: float
    ) -> None:
        values = {
            fields.EVENT: fields.ORCHESTRATION_DECISION_EVENT,
            fields.DECISION_PATH: decision.path,
            fields.OVERRIDE_REQUIRED: decision.override_required,
            fields.REPLAY: decision.replay,
            fields.FALLBACK: decision.fallback,
            fields.PROCEDURE_ID: decision.procedure_id,
            fields.PROCEDURE_VERSION: decision.procedure_version,
            fields.DURATION_MS: round(duration_ms, 3),
        }
        with log_context(values):
            _LOGGER.info(
                "Orchestration decision: trace_id=%s tenant_id=%s "
                "organization_id=%s decision_path=%s override_required=%s "
                "duration_ms=%.3f",
                request.trace_id,
                request.tenant_id,
                request.organization_id,
                decision.path,
                decision.override_required,
                duration_ms,
            )


def _trace_outcome(planned: PlannedExecution) -> TraceOutcome:
    if planned.error is None:
        return "planned"
    if planned.error.code == codes.SERVICE_OVERLOADED:
        return "overloaded"
    return "planner_failed"


def _approval_required(verdict: ValidationVerdict) -> ExecutionResult:
    request_id = (
        None if verdict.approval_request is None else verdict.approval_request.id
    )
    metadata = {"stage": verdict.stage}
    if request_id is not None:
        metadata["approval_request_id"] = request_id
    if verdict.error is not None:
        metadata["approval_error_code"] = verdict.error.code
    reason = verdict.reason or "Approval required"
    return ExecutionResult(
        success=False,
        message=reason,
        error=policy_error(reason, code=codes.APPROVAL_REQUIRED, metadata=metadata),
        override_required=True,
        approval_request_id=request_id,
        alternative_actions=tuple(item.action_type for item in verdict.alternatives),
    )


def _rejected(verdict: ValidationVerdict) -> ExecutionResult:
    reason = verdict.reason or "Validation failed"
    return ExecutionResult(
        success=False,
        message=reason,
        error=policy_error(
            reason,
            code=codes.VALIDATION_REJECTED,
            metadata={"stage": verdict.stage},
        ),
        alternative_actions=tuple(item.action_type for item in verdict.alternatives),
    )


def _payload_trace_id(payload: Mapping[str, Any]) -> str:
    if isinstance(payload, Mapping):
        candidate = payload.get("trace_id")
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return generate_ulid_str()
