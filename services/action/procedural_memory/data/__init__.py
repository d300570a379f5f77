"""Procedural Memory data layer exports."""

from services.action.procedural_memory.data.repository import (
    InMemoryProcedureRepository,
    PostgresProcedureRepository,
)
from services.action.procedural_memory.data.runtime import (
    ProceduralMemoryPostgresRuntime,
)
from services.action.procedural_memory.data.schema import (
    metadata,
    procedure_traces,
    procedures,
)

__all__ = [
    "InMemoryProcedureRepository",
    "PostgresProcedureRepository",
    "ProceduralMemoryPostgresRuntime",
    "metadata",
    "procedure_traces",
    "procedures",
]
