"""Side-effect free procedure executor used when no live executor is wired."""

from __future__ import annotations

from services.action.contracts import AgentRequest, ExecutionResult
from services.action.procedural_memory.domain import ProcedureStep
from services.action.procedural_memory.interfaces import ProcedureExecutor
from packages.crm_shared.logging import get_logger

_LOGGER = get_logger(__name__)


class DryRunProcedureExecutor(ProcedureExecutor):
    """Log each step and report success without touching external systems."""

    async def execute(
        self,
        *,
        request: AgentRequest,
        steps: tuple[ProcedureStep, ...],
        trace_id: str,
    ) -> ExecutionResult:
        for index, step in enumerate(steps, start=1):
            _LOGGER.info(
                "Dry-run step: trace_id=%s tenant_id=%s index=%s tool=%s",
                trace_id,
                request.tenant_id,
                index,
                step.tool,
            )
        return ExecutionResult(
            success=True,
            message=f"dry run executed {len(steps)} step(s)",
            trace_id=trace_id,
            output={"executed_steps": [step.tool for step in steps]},
        )
