"""Component declaration for Approval Workflow Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_approval_workflow")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.approval_workflow")}),
        public_api_roots=frozenset(
            {
                ModuleRoot("services.action.approval_workflow.service"),
                ModuleRoot("services.action.approval_workflow.domain"),
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
    from services.action.approval_workflow.service import (
        build_approval_workflow_service,
    )

    return build_approval_workflow_service(settings=settings)
