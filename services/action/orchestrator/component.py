"""Component declaration for Orchestrator Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)
from services.action.agent_planner.component import (
    SERVICE_COMPONENT_ID as AGENT_PLANNER_COMPONENT_ID,
)
from services.action.procedural_memory.component import (
    SERVICE_COMPONENT_ID as PROCEDURAL_MEMORY_COMPONENT_ID,
)
from services.action.validator_pipeline.component import (
    SERVICE_COMPONENT_ID as VALIDATOR_PIPELINE_COMPONENT_ID,
)

SERVICE_COMPONENT_ID = ComponentId("service_orchestrator")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.orchestrator")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.orchestrator.service"),
                ModuleRoot("services.action.orchestrator.domain"),
            }
        ),
        owns_resources=frozenset(),
    )
)


def build_component(
    *, settings: CrmSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.action.orchestrator.service import build_orchestrator_service

    return build_orchestrator_service(
        settings=settings,
        procedural_memory=components.get(str(PROCEDURAL_MEMORY_COMPONENT_ID)),
        planner=components.get(str(AGENT_PLANNER_COMPONENT_ID)),
        validator=components.get(str(VALIDATOR_PIPELINE_COMPONENT_ID)),
    )
