"""Tests for LiteLLM adapter settings resolution."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from packages.crm_shared.config import CrmSettings
from resources.adapters.litellm.config import (
    LiteLlmAdapterSettings,
    LiteLlmProviderSettings,
    LiteLlmRetrySettings,
    resolve_litellm_adapter_settings,
)


def test_resolve_litellm_adapter_settings_defaults() -> None:
    """Resolver should return model defaults when component section is absent."""
    settings = CrmSettings(components={})

    resolved = resolve_litellm_adapter_settings(settings)

    assert resolved == LiteLlmAdapterSettings()
    assert resolved.retry.max_attempts == 3


def test_resolve_litellm_adapter_settings_component_override() -> None:
    """Resolver should hydrate adapter settings from component subtree."""
    settings = CrmSettings(
        components={
            "adapter": {
                "litellm": {
                    "timeout_seconds": 5.5,
                    "retry": {"max_attempts": 5, "backoff_seconds": 0.1},
                    "providers": {
                        "anthropic": {
                            "api_key_env": "ANTHROPIC_API_KEY",
                            "timeout_seconds": 7.5,
                        }
                    },
                },
            }
        }
    )

    resolved = resolve_litellm_adapter_settings(settings)

    assert resolved.timeout_seconds == 5.5
    assert resolved.retry.max_attempts == 5
    assert resolved.providers == {
        "anthropic": LiteLlmProviderSettings(
            api_key_env="ANTHROPIC_API_KEY",
            timeout_seconds=7.5,
        )
    }


def test_retry_delay_doubles_and_caps() -> None:
    """Backoff should grow exponentially per attempt and stop at the cap."""
    policy = LiteLlmRetrySettings(backoff_seconds=1.0, max_backoff_seconds=3.0)

    assert policy.delay_for(1) == 1.0
    assert policy.delay_for(2) == 2.0
    assert policy.delay_for(3) == 3.0


def test_provider_rejects_inline_and_env_api_key_together() -> None:
    """Provider auth must come from exactly one source."""
    with pytest.raises(ValidationError):
        LiteLlmProviderSettings(api_key="inline", api_key_env="OPENAI_API_KEY")
