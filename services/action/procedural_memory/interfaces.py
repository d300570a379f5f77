"""Protocol interfaces for procedure persistence and step execution."""

from __future__ import annotations

from typing import Protocol

from services.action.contracts import AgentRequest, ExecutionResult
from services.action.procedural_memory.domain import (
    CompiledProcedure,
    ProcedureStep,
    ProcedureTrace,
)


class ProcedureRepository(Protocol):
    """Tenant-partitioned, append-only procedure and trace persistence."""

    async def list_enabled_procedures(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        """Return enabled procedures for one scope, highest version first."""

    async def list_procedure_versions(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        """Return every stored version for one scope, highest version first."""

    async def head_version(
        self,
        *,
        tenant_id: str,
        action_type: str,
        channel: str,
        organization_id: str | None,
        industry: str | None,
    ) -> int:
        """Return the highest stored version for one exact scope, or ``0``."""

    async def insert_procedure(self, *, procedure: CompiledProcedure) -> None:
        """Append one procedure version; raise on version conflict."""

    async def insert_trace(self, *, trace: ProcedureTrace) -> None:
        """Append one trace; raise ``DuplicateTraceError`` on id reuse."""

    async def list_traces(
        self, *, tenant_id: str, limit: int
    ) -> tuple[ProcedureTrace, ...]:
        """Return newest traces for one tenant."""


class ProcedureExecutor(Protocol):
    """External collaborator that runs procedure steps against live systems."""

    async def execute(
        self,
        *,
        request: AgentRequest,
        steps: tuple[ProcedureStep, ...],
        trace_id: str,
    ) -> ExecutionResult:
        """Execute steps in order and report the outcome."""
