"""LiteLLM-backed chat adapter used by the agent planner.

LiteLLM's built-in retries are switched off (``num_retries=0``); the adapter
runs its own bounded loop so a run of rate limits can be told apart from
other transient failures once the budget is spent.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

import litellm

from packages.crm_shared.logging import get_logger, public_api_instrumented
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
from resources.adapters.litellm.component import RESOURCE_COMPONENT_ID
from resources.adapters.litellm.config import (
    LiteLlmAdapterSettings,
    LiteLlmProviderSettings,
)

_LOGGER = get_logger(__name__)

# Provider SDKs raise their own classes, so names and messages are matched too.
_RATE_LIMIT_NAMES = ("ratelimit",)
_RATE_LIMIT_TEXT = ("rate limit", "429")
_PERMANENT_NAMES = ("badrequest", "authentication", "permissiondenied", "notfound")
_TRANSIENT_NAMES = ("timeout", "connection", "unavailable")
_TRANSIENT_TEXT = (
    "timed out",
    "timeout",
    "connection",
    "network",
    "unavailable",
    "502",
    "503",
    "504",
)


def _load_litellm_module() -> Any:
    return litellm


@dataclass(frozen=True)
class _ProviderCall:
    """Keyword arguments for ``acompletion`` minus the messages."""

    timeout_seconds: float
    request: dict[str, Any] = field(default_factory=dict)


class LiteLlmLibraryAdapter(LiteLlmAdapter):
    """Chat completions through ``litellm.acompletion``."""

    def __init__(self, *, settings: LiteLlmAdapterSettings) -> None:
        self._settings = settings

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(RESOURCE_COMPONENT_ID),
        id_fields=("provider", "model"),
    )
    async def chat(
        self,
        *,
        provider: str,
        model: str,
        prompt: str,
        system_prompt: str | None = None,
    ) -> AdapterChatResult:
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        call = self._prepare(provider=provider, model=model)
        response, attempts = await self._complete(provider, call, messages)
        return AdapterChatResult(
            text=_message_content(response),
            provider=provider,
            model=model,
            attempts=attempts,
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(RESOURCE_COMPONENT_ID))
    def health(self) -> AdapterHealthResult:
        """Ready when every configured provider resolves, API keys included."""
        try:
            for provider in self._settings.providers:
                self._prepare(provider=provider, model="health")
        except AdapterInternalError as exc:
            return AdapterHealthResult(adapter_ready=False, detail=str(exc))
        return AdapterHealthResult(adapter_ready=True, detail="ok")

    async def _complete(
        self,
        provider: str,
        call: _ProviderCall,
        messages: list[dict[str, str]],
    ) -> tuple[object, int]:
        module = _load_litellm_module()
        policy = self._settings.retry
        failures: list[AdapterDependencyError] = []

        for attempt in range(1, policy.max_attempts + 1):
            try:
                response = await asyncio.wait_for(
                    module.acompletion(messages=messages, **call.request),
                    timeout=call.timeout_seconds,
                )
            except Exception as exc:  # noqa: BLE001
                error = _classify(exc)
                if not isinstance(error, AdapterDependencyError):
                    raise error from None
            else:
                return response, attempt

            failures.append(error)
            _LOGGER.warning(
                "LiteLLM attempt failed: provider=%s attempt=%s/%s error_type=%s",
                provider,
                attempt,
                policy.max_attempts,
                type(error).__name__,
            )
            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.delay_for(attempt))

        if all(isinstance(item, AdapterRateLimitError) for item in failures):
            raise AdapterOverloadedError(
                f"rate limited on all {policy.max_attempts} attempts",
                attempts=policy.max_attempts,
            )
        raise failures[-1]

    def _prepare(self, *, provider: str, model: str) -> _ProviderCall:
        config = self._settings.providers.get(provider)
        if config is None:
            raise AdapterInternalError(f"provider '{provider}' is not configured")

        timeout = config.timeout_seconds
        if timeout is None:
            timeout = self._settings.timeout_seconds
        request: dict[str, Any] = {
            "model": f"{provider}/{model}",
            "timeout": timeout,
            "num_retries": 0,
        }
        if config.api_base.strip():
            request["api_base"] = config.api_base.strip()
        api_key = _api_key(provider, config)
        if api_key:
            request["api_key"] = api_key
        request.update(config.options)
        return _ProviderCall(timeout_seconds=timeout, request=request)


def _api_key(provider: str, config: LiteLlmProviderSettings) -> str:
    """Inline key first, then the named environment variable."""
    if config.api_key.strip():
        return config.api_key.strip()
    variable = config.api_key_env.strip()
    if not variable:
        return ""
    value = os.environ.get(variable, "").strip()
    if not value:
        raise AdapterInternalError(
            f"provider '{provider}' requires environment variable '{variable}'"
        )
    return value


def _message_content(response: object) -> str:
    choices = _lookup(response, "choices")
    if not isinstance(choices, list) or not choices:
        raise AdapterInternalError("response missing choices")
    content = _lookup(_lookup(choices[0], "message"), "content")
    if not isinstance(content, str):
        raise AdapterInternalError("chat response content is invalid")
    return content


def _lookup(container: object, name: str) -> object:
    if isinstance(container, Mapping):
        value = container.get(name)
    else:
        value = getattr(container, name, None)
    if value is None:
        raise AdapterInternalError(f"response missing {name}")
    return value


def _classify(exc: Exception) -> AdapterError:
    """Sort a provider exception into the adapter's error families."""
    if isinstance(exc, AdapterError):
        return exc
    name = type(exc).__name__.lower()
    text = str(exc)
    lowered = text.lower()

    if isinstance(exc, litellm.RateLimitError) or _matches(
        name, _RATE_LIMIT_NAMES, lowered, _RATE_LIMIT_TEXT
    ):
        return AdapterRateLimitError(text or "litellm rate limited")
    if isinstance(
        exc,
        (
            litellm.BadRequestError,
            litellm.AuthenticationError,
            litellm.PermissionDeniedError,
            litellm.NotFoundError,
        ),
    ) or _matches(name, _PERMANENT_NAMES, "", ()):
        return AdapterRequestError(text or "litellm request rejected")
    if isinstance(exc, (TimeoutError, ConnectionError)) or _matches(
        name, _TRANSIENT_NAMES, lowered, _TRANSIENT_TEXT
    ):
        return AdapterDependencyError(text or "litellm dependency failure")
    return AdapterInternalError(text or "litellm adapter internal failure")


def _matches(
    name: str, name_tokens: tuple[str, ...], text: str, text_tokens: tuple[str, ...]
) -> bool:
    return any(token in name for token in name_tokens) or any(
        token in text for token in text_tokens
    )
