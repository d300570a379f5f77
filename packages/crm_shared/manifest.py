"""Component manifests and the process-local registry that collects them.

Each service, adapter and substrate registers exactly one manifest from its
``component.py`` at import time. A service's id doubles as the name of the
Postgres schema it owns, so ids are restricted to lowercase identifiers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from threading import RLock
from typing import FrozenSet, Iterable, Literal, NewType, Optional

ComponentId = NewType("ComponentId", str)
ModuleRoot = NewType("ModuleRoot", str)

Layer = Literal[0, 1]
System = Literal["state", "action"]
ResourceKind = Literal["substrate", "adapter"]

_ID_PATTERN = re.compile(r"[a-z][a-z0-9_]{1,62}")
_DOTTED_PATH = re.compile(r"[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*", re.ASCII)


class ManifestError(ValueError):
    """A manifest is malformed or conflicts with the registry."""


def validate_component_id(value: ComponentId) -> None:
    """Reject ids that cannot double as a Postgres schema name."""
    if _ID_PATTERN.fullmatch(str(value)) is None:
        raise ManifestError(
            f"invalid component id '{value}'; expected ^[a-z][a-z0-9_]{{1,62}}$"
        )


def validate_module_root(value: ModuleRoot) -> None:
    """Reject anything that is not a dotted Python module path."""
    if _DOTTED_PATH.fullmatch(str(value)) is None:
        raise ManifestError(f"invalid module root '{value}'")


def component_id_to_schema_name(component_id: ComponentId) -> str:
    """Postgres schema owned by ``component_id``."""
    validate_component_id(component_id)
    return str(component_id)


def _require_roots(label: str, roots: Iterable[ModuleRoot]) -> None:
    roots = tuple(roots)
    if not roots:
        raise ManifestError(f"{label} must not be empty")
    for root in roots:
        validate_module_root(root)


@dataclass(frozen=True, slots=True)
class ComponentManifest:
    """Fields every component declares."""

    id: ComponentId
    layer: Layer
    system: System
    module_roots: FrozenSet[ModuleRoot]

    def __post_init__(self) -> None:
        validate_component_id(self.id)
        _require_roots("module_roots", self.module_roots)


@dataclass(frozen=True, slots=True)
class ResourceManifest(ComponentManifest):
    """A layer-0 adapter or substrate; ``owner_service_id`` None means shared."""

    layer: Literal[0]
    kind: ResourceKind
    owner_service_id: Optional[ComponentId] = None

    def __post_init__(self) -> None:
        super(ResourceManifest, self).__post_init__()
        if self.owner_service_id is not None:
            validate_component_id(self.owner_service_id)


@dataclass(frozen=True, slots=True)
class ServiceManifest(ComponentManifest):
    """A layer-1 action service and the resources it claims."""

    layer: Literal[1]
    public_api_roots: FrozenSet[ModuleRoot]
    owns_resources: Optional[FrozenSet[ComponentId]] = None

    def __post_init__(self) -> None:
        super(ServiceManifest, self).__post_init__()
        _require_roots("public_api_roots", self.public_api_roots)

    @property
    def schema_name(self) -> str:
        return component_id_to_schema_name(self.id)


@dataclass(slots=True)
class ManifestRegistry:
    """Thread-safe map of component id to manifest.

    Registering the same manifest twice is a no-op; registering a different
    manifest under a taken id is an error. Ownership conflicts are checked on
    every registration, while unknown owners are only reported by
    ``assert_valid`` since services may register after their resources.
    """

    _components: dict[ComponentId, ComponentManifest] = field(default_factory=dict)
    _lock: RLock = field(default_factory=RLock)

    def register_component(self, manifest: ComponentManifest) -> None:
        with self._lock:
            current = self._components.get(manifest.id)
            if current is not None and current != manifest:
                raise ManifestError(
                    f"duplicate component id with mismatched definition: {manifest.id}"
                )
            self._components[manifest.id] = manifest
            self._check_ownership(require_known_owners=False)

    def get_component(self, component_id: ComponentId) -> ComponentManifest:
        manifest = self._components.get(component_id)
        if manifest is None:
            raise ManifestError(f"component not registered: {component_id}")
        return manifest

    def list_components(self) -> tuple[ComponentManifest, ...]:
        return tuple(sorted(self._components.values(), key=lambda m: str(m.id)))

    def list_resources(self) -> tuple[ResourceManifest, ...]:
        return tuple(m for m in self.list_components() if isinstance(m, ResourceManifest))

    def list_services(self) -> tuple[ServiceManifest, ...]:
        """Services ordered state system first, then by id."""
        services = [m for m in self.list_components() if isinstance(m, ServiceManifest)]
        return tuple(sorted(services, key=lambda m: (m.system != "state", str(m.id))))

    def assert_valid(self) -> None:
        """Run every ownership check, including owner existence."""
        with self._lock:
            self._check_ownership(require_known_owners=True)

    def _check_ownership(self, *, require_known_owners: bool) -> None:
        claims: dict[ComponentId, ComponentId] = {}
        for service in self.list_services():
            for resource_id in service.owns_resources or ():
                previous = claims.setdefault(resource_id, service.id)
                if previous != service.id:
                    raise ManifestError(
                        f"resource '{resource_id}' has multiple owners: "
                        f"{previous} and {service.id}"
                    )

        known_services = {service.id for service in self.list_services()}
        for resource in self.list_resources():
            owner = resource.owner_service_id
            if owner is None:
                continue
            if owner not in known_services:
                if require_known_owners:
                    raise ManifestError(
                        f"resource '{resource.id}' references unknown owner service "
                        f"'{owner}'"
                    )
                continue
            claimed_by = claims.get(resource.id)
            if claimed_by is not None and claimed_by != owner:
                raise ManifestError(
                    f"resource '{resource.id}' owner mismatch: claimed by "
                    f"'{claimed_by}', manifest names '{owner}'"
                )


_REGISTRY = ManifestRegistry()


def register_component(manifest: ComponentManifest) -> ComponentManifest:
    """Add ``manifest`` to the process registry and return it unchanged."""
    _REGISTRY.register_component(manifest)
    return manifest


def get_registry() -> ManifestRegistry:
    return _REGISTRY
