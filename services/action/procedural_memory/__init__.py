"""Procedural Memory Service package exports."""

from services.action.procedural_memory.component import MANIFEST
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
    DuplicateTraceError,
    MatchTier,
    ProcedureLookup,
    ProcedureRing,
    ProcedureStep,
    ProcedureTrace,
    ProcedureVersionConflictError,
    ReplayPlan,
    TraceOutcome,
)
from services.action.procedural_memory.executor import DryRunProcedureExecutor
from services.action.procedural_memory.implementation import (
    DefaultProceduralMemoryService,
)
from services.action.procedural_memory.interfaces import (
    ProcedureExecutor,
    ProcedureRepository,
)
from services.action.procedural_memory.service import (
    ProceduralMemoryService,
    build_procedural_memory_service,
)

__all__ = [
    "CompiledProcedure",
    "DefaultProceduralMemoryService",
    "DryRunProcedureExecutor",
    "DuplicateTraceError",
    "InMemoryProcedureRepository",
    "MANIFEST",
    "MatchTier",
    "PostgresProcedureRepository",
    "ProceduralMemoryPostgresRuntime",
    "ProceduralMemoryService",
    "ProceduralMemorySettings",
    "ProcedureExecutor",
    "ProcedureLookup",
    "ProcedureRepository",
    "ProcedureRing",
    "ProcedureStep",
    "ProcedureTrace",
    "ProcedureVersionConflictError",
    "ReplayPlan",
    "TraceOutcome",
    "build_procedural_memory_service",
    "resolve_procedural_memory_settings",
]
