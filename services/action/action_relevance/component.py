"""Component declaration for Action Relevance Validator Service."""

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

SERVICE_COMPONENT_ID = ComponentId("service_action_relevance")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.action_relevance")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.action_relevance.service"),
                ModuleRoot("services.action.action_relevance.domain"),
            }
        ),
        owns_resources=frozenset(),
    )
)


def build_component(
    *, settings: CrmSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.action.action_relevance.service import (
        build_action_relevance_service,
    )

    return build_action_relevance_service(
        settings=settings,
        adapter=components.get(str(LITELLM_ADAPTER_COMPONENT_ID)),
    )
