"""Component declaration for Procedural Memory Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_procedural_memory")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.procedural_memory")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.procedural_memory.service"),
                ModuleRoot("services.action.procedural_memory.domain"),
            }
        ),
        owns_resources=frozenset(),
    )
)


def build_component(
    *, settings: CrmSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    del components
    from services.action.procedural_memory.service import (
        build_procedural_memory_service,
    )

    return build_procedural_memory_service(settings=settings)
