"""LiteLLM adapter resource exports."""

from resources.adapters.litellm.adapter import (
    AdapterChatResult,
    AdapterDependencyError,
    AdapterError,
    AdapterHealthResult,
    AdapterInternalError,
    AdapterOverloadedError,
    AdapterRateLimitError,
    AdapterRequestError,
    LiteLlmAdapter,
)
from resources.adapters.litellm.component import MANIFEST, RESOURCE_COMPONENT_ID
from resources.adapters.litellm.config import (
    LiteLlmAdapterSettings,
    LiteLlmProviderSettings,
    LiteLlmRetrySettings,
    resolve_litellm_adapter_settings,
)
from resources.adapters.litellm.litellm_adapter import LiteLlmLibraryAdapter

__all__ = [
    "AdapterChatResult",
    "AdapterDependencyError",
    "AdapterError",
    "AdapterHealthResult",
    "AdapterInternalError",
    "AdapterOverloadedError",
    "AdapterRateLimitError",
    "AdapterRequestError",
    "LiteLlmAdapter",
    "LiteLlmAdapterSettings",
    "LiteLlmLibraryAdapter",
    "LiteLlmProviderSettings",
    "LiteLlmRetrySettings",
    "MANIFEST",
    "RESOURCE_COMPONENT_ID",
    "resolve_litellm_adapter_settings",
]
