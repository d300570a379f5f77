"""Settings loading with deterministic precedence.

The cascade is always:
1) init overrides
2) Environment variables (``CRM_`` prefix, ``__`` nesting)
3) ``~/.config/crm/crm.yaml``
4) Built-in model defaults

Example: ``CRM_LOGGING__LEVEL=DEBUG`` -> ``logging.level = "DEBUG"``
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping

from .models import CrmSettings


def load_settings(*, overrides: Mapping[str, Any] | None = None) -> CrmSettings:
    """Load root settings, caching the plain no-override form."""
    if overrides is None:
        return _cached_settings()
    return CrmSettings(**dict(overrides))


@lru_cache(maxsize=1)
def _cached_settings() -> CrmSettings:
    return CrmSettings()
