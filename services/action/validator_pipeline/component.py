"""Component declaration for Validator Pipeline Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)
from services.action.action_relevance.component import (
    SERVICE_COMPONENT_ID as ACTION_RELEVANCE_COMPONENT_ID,
)
from services.action.approval_workflow.component import (
    SERVICE_COMPONENT_ID as APPROVAL_WORKFLOW_COMPONENT_ID,
)

SERVICE_COMPONENT_ID = ComponentId("service_validator_pipeline")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.validator_pipeline")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.validator_pipeline.service"),
                ModuleRoot("services.action.validator_pipeline.domain"),
            }
        ),
        owns_resources=frozenset(),
    )
)


def build_component(
    *, settings: CrmSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.action.validator_pipeline.service import (
        build_validator_pipeline_service,
    )

    return build_validator_pipeline_service(
        settings=settings,
        relevance_service=components.get(str(ACTION_RELEVANCE_COMPONENT_ID)),
        approval_service=components.get(str(APPROVAL_WORKFLOW_COMPONENT_ID)),
    )
