"""Concrete Procedural Memory Service with tiered lookup and append-only writes."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.ids import generate_ulid_str
from packages.crm_shared.logging import get_logger, public_api_instrumented
from services.action.procedural_memory.component import SERVICE_COMPONENT_ID
from services.action.procedural_memory.config import (
    ProceduralMemorySettings,
    resolve_procedural_memory_settings,
)
from services.action.procedural_memory.data.repository import (
    InMemoryProcedureRepository,
    PostgresProcedureRepository,
)
from services.action.procedural_memory.data.runtime import (
    ProceduralMemoryPostgresRuntime,
)
from services.action.procedural_memory.domain import (
    CompiledProcedure,
    MatchTier,
    ProcedureLookup,
    ProcedureTrace,
    ProcedureVersionConflictError,
    ReplayPlan,
)
from services.action.procedural_memory.interfaces import ProcedureRepository
from services.action.procedural_memory.service import ProceduralMemoryService

_LOGGER = get_logger(__name__)

_REASON_INDUSTRY_FILTER_DEGRADED = "industry_filter_degraded"


class DefaultProceduralMemoryService(ProceduralMemoryService):
    """Default procedural memory over a tenant-partitioned repository."""

    def __init__(
        self,
        *,
        settings: ProceduralMemorySettings,
        repository: ProcedureRepository | None = None,
    ) -> None:
        self._settings = settings
        self._repository = repository or InMemoryProcedureRepository()
        self._redacted_keys = frozenset(key.lower() for key in settings.redacted_keys)

    @classmethod
    def from_settings(
        cls,
        settings: CrmSettings,
        *,
        repository: ProcedureRepository | None = None,
    ) -> "DefaultProceduralMemoryService":
        """Build procedural memory from typed root runtime settings."""
        if repository is None:
            runtime = ProceduralMemoryPostgresRuntime.from_settings(settings)
            repository = PostgresProcedureRepository(runtime.schema_sessions)
        return cls(
            settings=resolve_procedural_memory_settings(settings),
            repository=repository,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("lookup",),
    )
    async def try_find(
        self,
        *,
        lookup: ProcedureLookup,
        use_industry_filter: bool | None = None,
    ) -> ReplayPlan | None:
        """Return the highest enabled version in the most specific tier.

        With industry filtering on and an industry supplied, the organization's
        procedure for that industry is tried first, then the tenant's
        industry-wide one. Anything left falls through to the legacy match,
        which takes any industry from tenant-wide or same-organization rows.
        """
        candidates = [
            row
            for row in await self._repository.list_enabled_procedures(
                tenant_id=lookup.tenant_id,
                action_type=lookup.action_type,
                channel=lookup.channel,
            )
            if row.enabled
            and row.tenant_id == lookup.tenant_id
            and row.ring in self._settings.replay_rings
        ]
        filter_enabled = (
            self._settings.use_industry_filter
            if use_industry_filter is None
            else use_industry_filter
        )

        if filter_enabled and lookup.industry:
            for tier, predicate in _tiers(lookup):
                match = _highest([row for row in candidates if predicate(row)])
                if match is not None:
                    return ReplayPlan.from_procedure(match, match_tier=tier)
        elif filter_enabled:
            _LOGGER.info(
                "Procedure lookup fell back to legacy match: reason=%s "
                "tenant_id=%s action_type=%s channel=%s",
                _REASON_INDUSTRY_FILTER_DEGRADED,
                lookup.tenant_id,
                lookup.action_type,
                lookup.channel,
            )
        match = _highest(
            [
                row
                for row in candidates
                if row.organization_id is None
                or row.organization_id == lookup.organization_id
            ]
        )
        if match is None:
            return None
        tier: MatchTier = "tenant" if match.organization_id is None else "organization"
        return ReplayPlan.from_procedure(match, match_tier=tier)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def upsert_procedure(
        self, *, procedure: CompiledProcedure
    ) -> CompiledProcedure:
        """Append ``procedure`` as a new version; never rewrite existing rows."""
        last_error: ProcedureVersionConflictError | None = None
        candidate = procedure
        for attempt in range(1, self._settings.upsert_max_attempts + 1):
            head = await self._repository.head_version(
                tenant_id=procedure.tenant_id,
                action_type=procedure.action_type,
                channel=procedure.channel,
                organization_id=procedure.organization_id,
                industry=procedure.industry,
            )
            if candidate.version <= head:
                candidate = procedure.model_copy(
                    update={"id": generate_ulid_str(), "version": head + 1}
                )
            try:
                await self._repository.insert_procedure(procedure=candidate)
            except ProcedureVersionConflictError as exc:
                last_error = exc
                _LOGGER.warning(
                    "Procedure version conflict: tenant_id=%s action_type=%s "
                    "version=%s attempt=%s",
                    procedure.tenant_id,
                    procedure.action_type,
                    candidate.version,
                    attempt,
                )
                continue
            return candidate
        raise ProcedureVersionConflictError(
            f"procedure upsert gave up after {self._settings.upsert_max_attempts} "
            "attempt(s)"
        ) from last_error

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("trace",),
    )
    async def capture_trace(self, *, trace: ProcedureTrace) -> ProcedureTrace:
        """Persist one trace with sensitive inputs masked."""
        stored = trace.model_copy(
            update={"redacted_inputs": self.redact_inputs(trace.redacted_inputs)}
        )
        await self._repository.insert_trace(trace=stored)
        return stored

    async def list_procedure_versions(
        self, *, tenant_id: str, action_type: str, channel: str
    ) -> tuple[CompiledProcedure, ...]:
        return await self._repository.list_procedure_versions(
            tenant_id=tenant_id, action_type=action_type, channel=channel
        )

    async def list_traces(
        self, *, tenant_id: str, limit: int = 100
    ) -> tuple[ProcedureTrace, ...]:
        bounded = max(1, min(limit, self._settings.max_trace_list_limit))
        return await self._repository.list_traces(tenant_id=tenant_id, limit=bounded)

    def redact_inputs(self, parameters: dict[str, Any]) -> dict[str, Any]:
        return _redact(
            parameters, keys=self._redacted_keys, mask=self._settings.redaction_mask
        )


def _tiers(lookup: ProcedureLookup) -> Iterable[tuple[MatchTier, Any]]:
    yield (
        "organization",
        lambda row: lookup.organization_id is not None
        and row.organization_id == lookup.organization_id
        and row.industry == lookup.industry,
    )
    yield (
        "industry",
        lambda row: row.organization_id is None and row.industry == lookup.industry,
    )


def _highest(rows: list[CompiledProcedure]) -> CompiledProcedure | None:
    if not rows:
        return None
    return max(rows, key=lambda row: (row.version, row.created_at))


def _redact(value: Any, *, keys: frozenset[str], mask: str) -> Any:
    if isinstance(value, dict):
        return {
            key: mask
            if str(key).lower() in keys
            else _redact(item, keys=keys, mask=mask)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item, keys=keys, mask=mask) for item in value]
    return value
