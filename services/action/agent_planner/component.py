"""Component declaration for Agent Planner Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)
from resources.adapters.litellm.component import (
    RESOURCE_COMPONENT_ID as LITELLM_ADAPTER_COMPONENT_ID,
)

SERVICE_COMPONENT_ID = ComponentId("service_agent_planner")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.agent_planner")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.agent_planner.service"),
                ModuleRoot("services.action.agent_planner.domain"),
            }
        ),
        owns_resources=frozenset(),
    )
)


def build_component(
    *, settings: CrmSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.action.agent_planner.service import (
        build_agent_planner_service,
    )

    return build_agent_planner_service(
        settings=settings,
        adapter=components.get(str(LITELLM_ADAPTER_COMPONENT_ID)),
    )
