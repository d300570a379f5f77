"""Authoritative in-process Python API for Procedural Memory Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from packages.crm_shared.config import CrmSettings
from services.action.procedural_memory.domain import (
    CompiledProcedure,
    ProcedureLookup,
    ProcedureTrace,
    ReplayPlan,
)
from services.action.procedural_memory.interfaces import ProcedureRepository


class ProceduralMemoryService(ABC):
    """Public API for replay-plan lookup, versioned upserts, and traces."""

    @abstractmethod
    async def try_find(
        self,
        *,
        lookup: ProcedureLookup,
        use_industry_filter: bool | None = None,
    ) -> ReplayPlan | None:
        """Return the highest enabled version in the best matching tier."""

    @abstractmethod
    async def upsert_procedure(
        self, *, procedure: CompiledProcedure
    ) -> CompiledProcedure:
        """Append one procedure version and return the stored row."""

    @abstractmethod
    async def capture_trace(self, *, trace: ProcedureTrace) -> ProcedureTrace:
        """Persist one write-once planning trace."""

    @abstractmethod
    async def list_procedure_versions(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        """Return procedure history for one scope, newest version first."""

    @abstractmethod
    async def list_traces(
        self, *, tenant_id: str, limit: int = 100
    ) -> tuple[ProcedureTrace, ...]:
        """Return newest traces for one tenant."""

    @abstractmethod
    def redact_inputs(self, parameters: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``parameters`` with sensitive values masked."""


def build_procedural_memory_service(
    *,
    settings: CrmSettings,
    repository: ProcedureRepository | None = None,
) -> ProceduralMemoryService:
    """Build default Procedural Memory Service implementation."""
    from services.action.procedural_memory.implementation import (
        DefaultProceduralMemoryService,
    )

    return DefaultProceduralMemoryService.from_settings(
        settings, repository=repository
    )
