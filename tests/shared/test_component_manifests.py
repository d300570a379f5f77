"""Tests for component manifests and the process-local registry."""

from __future__ import annotations

import pytest

import resources.adapters.litellm.component  # noqa: F401
import resources.substrates.postgres.component  # noqa: F401
import services.action.action_relevance.component  # noqa: F401
import services.action.agent_planner.component  # noqa: F401
import services.action.approval_workflow.component  # noqa: F401
import services.action.orchestrator.component  # noqa: F401
import services.action.procedural_memory.component  # noqa: F401
import services.action.validator_pipeline.component  # noqa: F401
from packages.crm_shared.manifest import (
    ComponentId,
    ManifestError,
    ManifestRegistry,
    ModuleRoot,
    ResourceManifest,
    ServiceManifest,
    get_registry,
)

_EXPECTED_SERVICES = {
    "service_action_relevance",
    "service_agent_planner",
    "service_approval_workflow",
    "service_orchestrator",
    "service_procedural_memory",
    "service_validator_pipeline",
}


def _service(component_id: str, *, owns: frozenset[ComponentId]) -> ServiceManifest:
    return ServiceManifest(
        id=ComponentId(component_id),
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot(f"services.action.{component_id}")}),
        public_api_roots=frozenset({ModuleRoot(f"services.action.{component_id}")}),
        owns_resources=owns,
    )


def test_every_action_service_is_registered_and_valid() -> None:
    """Importing component modules registers a consistent service set."""
    registry = get_registry()
    registry.assert_valid()

    registered = {str(item.id) for item in registry.list_services()}

    assert _EXPECTED_SERVICES <= registered
    assert all(item.layer == 1 for item in registry.list_services())
    assert all(item.layer == 0 for item in registry.list_resources())


def test_schema_name_follows_component_id() -> None:
    """Each service owns the Postgres schema named after its id."""
    manifest = get_registry().get_component(ComponentId("service_approval_workflow"))

    assert isinstance(manifest, ServiceManifest)
    assert manifest.schema_name == "service_approval_workflow"


def test_invalid_component_id_is_rejected() -> None:
    """Ids must be lowercase schema-safe identifiers."""
    with pytest.raises(ManifestError):
        _service("Service-Bad", owns=frozenset())


def test_resource_with_two_owners_is_rejected() -> None:
    """One resource may be owned by at most one service."""
    registry = ManifestRegistry()
    registry.register_component(
        _service("service_one", owns=frozenset({ComponentId("substrate_x")}))
    )

    with pytest.raises(ManifestError, match="multiple owners"):
        registry.register_component(
            _service("service_two", owns=frozenset({ComponentId("substrate_x")}))
        )


def test_strict_validation_requires_known_owner() -> None:
    """assert_valid rejects resources naming an unregistered owner."""
    registry = ManifestRegistry()
    registry.register_component(
        ResourceManifest(
            id=ComponentId("substrate_x"),
            layer=0,
            system="state",
            module_roots=frozenset({ModuleRoot("resources.substrates.x")}),
            kind="substrate",
            owner_service_id=ComponentId("service_missing"),
        )
    )

    with pytest.raises(ManifestError, match="unknown owner service"):
        registry.assert_valid()


def test_unknown_component_lookup_raises() -> None:
    """Unregistered ids raise a manifest error rather than KeyError."""
    with pytest.raises(ManifestError, match="component not registered"):
        ManifestRegistry().get_component(ComponentId("service_nope"))
