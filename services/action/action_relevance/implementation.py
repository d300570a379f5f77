"""Concrete Action Relevance Validator with rule, semantic, and approval stages."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.ids import generate_ulid_str
from packages.crm_shared.logging import get_logger, public_api_instrumented
from resources.adapters.litellm import (
    AdapterError,
    LiteLlmAdapter,
    LiteLlmLibraryAdapter,
    resolve_litellm_adapter_settings,
)
from services.action.action_relevance.approval_modes import (
    ApprovalQuery,
    build_approval_handlers,
    resolve_override_mode,
)
from services.action.action_relevance.component import SERVICE_COMPONENT_ID
from services.action.action_relevance.config import (
    ActionRelevanceSettings,
    resolve_action_relevance_settings,
)
from services.action.action_relevance.criteria import evaluate_criteria
from services.action.action_relevance.data.repository import (
    InMemoryValidationAuditRepository,
    PostgresValidationAuditRepository,
)
from services.action.action_relevance.data.runtime import (
    ActionRelevancePostgresRuntime,
)
from services.action.action_relevance.domain import (
    ActionRelevanceRequest,
    ActionRelevanceResult,
    ComplianceViolation,
    ContactContext,
    ScheduledAction,
    ValidationAuditEntry,
    ValidationMethod,
)
from services.action.action_relevance.interfaces import (
    ContactContextProvider,
    ValidationAuditRepository,
)
from services.action.action_relevance.semantic import (
    APPROVAL_SYSTEM_PROMPT,
    RELEVANCE_SYSTEM_PROMPT,
    compose_approval_prompt,
    compose_relevance_prompt,
    parse_approval_reply,
    parse_relevance_reply,
)
from services.action.action_relevance.service import ActionRelevanceService
from services.action.contracts import override_text, utc_now

_LOGGER = get_logger(__name__)

_CHECKED_BY = "ActionRelevanceValidator"
_OVERRIDE_MODE_KEY = "overrideMode"


class DefaultActionRelevanceService(ActionRelevanceService):
    """Default relevance validator over an adapter, context provider, and audit store."""

    def __init__(
        self,
        *,
        settings: ActionRelevanceSettings,
        adapter: LiteLlmAdapter | None = None,
        contact_provider: ContactContextProvider | None = None,
        audit_repository: ValidationAuditRepository | None = None,
    ) -> None:
        self._settings = settings
        self._adapter = adapter
        self._contact_provider = contact_provider
        self._audit = audit_repository or InMemoryValidationAuditRepository(
            max_entries=settings.audit_max_entries
        )
        self._approval_handlers = build_approval_handlers(self._llm_decision)

    @classmethod
    def from_settings(
        cls,
        settings: CrmSettings,
        *,
        adapter: LiteLlmAdapter | None = None,
        contact_provider: ContactContextProvider | None = None,
        audit_repository: ValidationAuditRepository | None = None,
    ) -> "DefaultActionRelevanceService":
        """Build relevance validator from typed root runtime settings."""
        if audit_repository is None:
            runtime = ActionRelevancePostgresRuntime.from_settings(settings)
            audit_repository = PostgresValidationAuditRepository(
                runtime.schema_sessions
            )
        return cls(
            settings=resolve_action_relevance_settings(settings),
            adapter=adapter
            or LiteLlmLibraryAdapter(
                settings=resolve_litellm_adapter_settings(settings)
            ),
            contact_provider=contact_provider,
            audit_repository=audit_repository,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def validate_action_relevance(
        self,
        *,
        request: ActionRelevanceRequest,
        settings: ActionRelevanceSettings | None = None,
    ) -> ActionRelevanceResult:
        snapshot = settings or self._settings
        action = request.action
        trace_id = request.trace_id
        try:
            context = await self._current_context(
                action=action, supplied=request.current_context, settings=snapshot
            )
            result = evaluate_criteria(
                action.relevance_criteria, context, trace_id=trace_id
            )
            if (
                request.use_llm_validation
                and snapshot.enable_llm_validation
                and self._adapter is not None
                and result.confidence < snapshot.minimum_confidence_score
            ):
                semantic = await self._semantic(
                    action=action,
                    contact_context=context,
                    overrides=request.user_overrides,
                    trace_id=trace_id,
                    settings=snapshot,
                )
                if semantic.confidence > result.confidence:
                    result = semantic
                else:
                    result = result.model_copy(
                        update={"validation_method": "RuleBased+LLM"}
                    )
            if not result.is_relevant:
                result = self._with_alternatives(
                    result, action=action, context=context, settings=snapshot
                )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception(
                "Relevance validation failed: action_id=%s trace_id=%s",
                action.id,
                trace_id,
            )
            result = self._safe_default(
                action=action,
                trace_id=trace_id,
                reason=f"Validation failed: {exc}",
                method="Error",
                settings=snapshot,
            )

        result = result.model_copy(
            update={
                "action_id": action.id,
                "contact_id": action.contact_id,
                "action_type": action.action_type,
                "trace_id": trace_id,
            }
        )
        if snapshot.enable_audit_logging:
            await self._append_audit(result=result, tenant_id=action.tenant_id)
        _LOGGER.info(
            "Relevance validation completed: action_id=%s relevant=%s "
            "confidence=%.2f method=%s trace_id=%s",
            action.id,
            result.is_relevant,
            result.confidence,
            result.validation_method,
            trace_id,
        )
        return result

    async def validate_batch(
        self,
        *,
        requests: Sequence[ActionRelevanceRequest],
        settings: ActionRelevanceSettings | None = None,
    ) -> tuple[ActionRelevanceResult, ...]:
        snapshot = settings or self._settings
        semaphore = asyncio.Semaphore(snapshot.batch_concurrency)

        async def _one(request: ActionRelevanceRequest) -> ActionRelevanceResult:
            async with semaphore:
                try:
                    return await self.validate_action_relevance(
                        request=request, settings=snapshot
                    )
                except Exception as exc:  # noqa: BLE001
                    _LOGGER.warning(
                        "Batch item failed: action_id=%s trace_id=%s error=%s",
                        request.action.id,
                        request.trace_id,
                        exc,
                    )
                    return self._safe_default(
                        action=request.action,
                        trace_id=request.trace_id,
                        reason=f"Validation failed: {exc}",
                        method="Error",
                        settings=snapshot,
                    )

        results = await asyncio.gather(*(_one(request) for request in requests))
        _LOGGER.info(
            "Batch validation completed: relevant=%s total=%s",
            sum(1 for result in results if result.is_relevant),
            len(results),
        )
        return tuple(results)

    async def is_action_still_relevant(
        self,
        *,
        action: ScheduledAction,
        contact_context: ContactContext | None = None,
        trace_id: str | None = None,
    ) -> bool:
        result = await self.validate_action_relevance(
            request=ActionRelevanceRequest(
                action=action,
                current_context=contact_context,
                trace_id=trace_id or generate_ulid_str(),
            )
        )
        return result.is_relevant

    async def evaluate_relevance_criteria(
        self,
        *,
        criteria: Mapping[str, Any],
        contact_context: ContactContext,
        trace_id: str | None = None,
        tenant_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> ActionRelevanceResult:
        snapshot = settings or self._settings
        result = evaluate_criteria(
            criteria, contact_context, trace_id=trace_id or generate_ulid_str()
        )
        result = result.model_copy(update={"contact_id": contact_context.contact_id})
        if snapshot.enable_audit_logging:
            await self._append_audit(result=result, tenant_id=tenant_id)
        return result

    async def validate_with_llm(
        self,
        *,
        action: ScheduledAction,
        contact_context: ContactContext,
        overrides: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> ActionRelevanceResult:
        snapshot = settings or self._settings
        resolved_trace = trace_id or generate_ulid_str()
        result = await self._semantic(
            action=action,
            contact_context=contact_context,
            overrides=overrides,
            trace_id=resolved_trace,
            settings=snapshot,
        )
        result = result.model_copy(
            update={
                "action_id": action.id,
                "contact_id": action.contact_id,
                "action_type": action.action_type,
                "trace_id": resolved_trace,
            }
        )
        if snapshot.enable_audit_logging:
            await self._append_audit(result=result, tenant_id=action.tenant_id)
        return result

    async def _semantic(
        self,
        *,
        action: ScheduledAction,
        contact_context: ContactContext,
        overrides: Mapping[str, Any] | None,
        trace_id: str,
        settings: ActionRelevanceSettings,
    ) -> ActionRelevanceResult:
        """Model-backed judgement without auditing; callers audit the outcome."""
        if self._adapter is None:
            return self._safe_default(
                action=action,
                trace_id=trace_id,
                reason="LLM validation unavailable: no adapter configured",
                method="LLM-Error",
                settings=settings,
            )
        try:
            reply = await self._adapter.chat(
                provider=settings.model.provider,
                model=settings.model.model,
                prompt=compose_relevance_prompt(action, contact_context, overrides),
                system_prompt=RELEVANCE_SYSTEM_PROMPT,
            )
        except AdapterError as exc:
            _LOGGER.warning(
                "LLM relevance validation failed: action_id=%s trace_id=%s "
                "error_type=%s",
                action.id,
                trace_id,
                type(exc).__name__,
            )
            return self._safe_default(
                action=action,
                trace_id=trace_id,
                reason=f"LLM validation failed: {exc}",
                method="LLM-Error",
                settings=settings,
            )
        return parse_relevance_reply(reply.text, action=action, trace_id=trace_id)

    def suggest_alternative_actions(
        self,
        *,
        original_action: ScheduledAction,
        contact_context: ContactContext,
        suggested_types: Sequence[str] = (),
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> tuple[ScheduledAction, ...]:
        del contact_context
        snapshot = settings or self._settings
        resolved_trace = trace_id or generate_ulid_str()
        original_type = original_action.action_type.lower()
        candidates: list[tuple[str, str]] = []
        for source, target in snapshot.alternative_templates.items():
            if source.lower() == original_type:
                candidates.append((target, f"Alternative to {original_action.action_type}"))
        for suggested in suggested_types:
            candidates.append((suggested, "Suggested by relevance review"))
        if not candidates:
            candidates.append(
                (snapshot.fallback_alternative, "Manual review of rejected action")
            )

        alternatives: list[ScheduledAction] = []
        seen: set[str] = set()
        for action_type, description in candidates:
            key = action_type.strip().lower()
            if not key or key == original_type or key in seen:
                continue
            seen.add(key)
            alternatives.append(
                original_action.alternative(
                    action_type=action_type.strip(),
                    description=description,
                    trace_id=resolved_trace,
                )
            )
        if not alternatives:
            alternatives.append(
                original_action.alternative(
                    action_type=snapshot.fallback_alternative,
                    description="Manual review of rejected action",
                    trace_id=resolved_trace,
                )
            )
        return tuple(alternatives)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "tenant_id", "trace_id"),
    )
    async def requires_approval(
        self,
        *,
        action: ScheduledAction,
        relevance: ActionRelevanceResult,
        user_id: str,
        tenant_id: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> bool:
        snapshot = settings or self._settings
        resolved_trace = trace_id or generate_ulid_str()
        try:
            mode = resolve_override_mode(
                snapshot,
                requested=override_text(overrides or {}, _OVERRIDE_MODE_KEY),
                user_id=user_id,
                tenant_id=tenant_id or action.tenant_id,
            )
            required = await self._approval_handlers[mode](
                ApprovalQuery(
                    action=action,
                    relevance=relevance,
                    settings=snapshot,
                    trace_id=resolved_trace,
                )
            )
        except Exception:  # noqa: BLE001
            _LOGGER.exception(
                "Approval requirement check failed; requiring approval: "
                "action_id=%s trace_id=%s",
                action.id,
                resolved_trace,
            )
            return True
        _LOGGER.debug(
            "Approval requirement resolved: mode=%s required=%s trace_id=%s",
            mode.value,
            required,
            resolved_trace,
        )
        return required

    async def llm_recommends_approval(
        self,
        *,
        action: ScheduledAction,
        relevance: ActionRelevanceResult,
        contact_context: ContactContext,
        trace_id: str | None = None,
        settings: ActionRelevanceSettings | None = None,
    ) -> bool:
        snapshot = settings or self._settings
        if self._adapter is None:
            return True
        try:
            reply = await self._adapter.chat(
                provider=snapshot.model.provider,
                model=snapshot.model.model,
                prompt=compose_approval_prompt(action, relevance, contact_context),
                system_prompt=APPROVAL_SYSTEM_PROMPT,
            )
        except AdapterError as exc:
            _LOGGER.warning(
                "LLM approval recommendation failed; requiring approval: "
                "action_id=%s trace_id=%s error_type=%s",
                action.id,
                trace_id,
                type(exc).__name__,
            )
            return True
        requires, reason = parse_approval_reply(reply.text)
        _LOGGER.debug(
            "LLM approval recommendation: required=%s reason=%s trace_id=%s",
            requires,
            reason,
            trace_id,
        )
        return requires

    async def get_validation_audit_log(
        self,
        *,
        contact_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        action_type: str | None = None,
    ) -> tuple[ValidationAuditEntry, ...]:
        return await self._audit.list_audit(
            contact_id=contact_id, start=start, end=end, action_type=action_type
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def record_compliance_violation(
        self, *, violation: ComplianceViolation
    ) -> ComplianceViolation:
        await self._audit.append_violation(violation=violation)
        return violation

    async def list_compliance_violations(
        self, *, tenant_id: str, limit: int = 100
    ) -> tuple[ComplianceViolation, ...]:
        return await self._audit.list_violations(
            tenant_id=tenant_id, limit=max(1, limit)
        )

    def get_configuration(self) -> ActionRelevanceSettings:
        return self._settings

    def update_configuration(
        self, *, settings: ActionRelevanceSettings
    ) -> ActionRelevanceSettings:
        self._settings = settings
        _LOGGER.info("Action relevance configuration updated")
        return settings

    async def _llm_decision(self, query: ApprovalQuery) -> bool:
        context = await self._current_context(
            action=query.action, supplied=None, settings=query.settings
        )
        return await self.llm_recommends_approval(
            action=query.action,
            relevance=query.relevance,
            contact_context=context,
            trace_id=query.trace_id,
            settings=query.settings,
        )

    async def _current_context(
        self,
        *,
        action: ScheduledAction,
        supplied: ContactContext | None,
        settings: ActionRelevanceSettings,
    ) -> ContactContext:
        """Return ``supplied`` unless missing or stale, refreshing when possible."""
        if supplied is not None and not _is_stale(supplied, settings):
            return supplied
        if self._contact_provider is None or action.contact_id is None:
            return supplied or ContactContext(
                contact_id=action.contact_id,
                organization_id=action.organization_id,
            )
        return await self._contact_provider.get_contact_context(
            contact_id=action.contact_id,
            organization_id=action.organization_id,
            agent_id=action.scheduled_by_agent or None,
        )

    def _with_alternatives(
        self,
        result: ActionRelevanceResult,
        *,
        action: ScheduledAction,
        context: ContactContext,
        settings: ActionRelevanceSettings,
    ) -> ActionRelevanceResult:
        alternatives = self.suggest_alternative_actions(
            original_action=action,
            contact_context=context,
            suggested_types=result.alternative_actions,
            trace_id=result.trace_id or None,
            settings=settings,
        )
        return result.model_copy(
            update={
                "alternative_actions": tuple(item.action_type for item in alternatives)
            }
        )

    def _safe_default(
        self,
        *,
        action: ScheduledAction,
        trace_id: str,
        reason: str,
        method: ValidationMethod,
        settings: ActionRelevanceSettings,
    ) -> ActionRelevanceResult:
        relevant = settings.default_action_on_uncertainty != "suppress"
        result = ActionRelevanceResult(
            is_relevant=relevant,
            confidence=0.0,
            reason=reason,
            validation_method=method,
            action_id=action.id,
            contact_id=action.contact_id,
            action_type=action.action_type,
            trace_id=trace_id,
            checked_by=_CHECKED_BY if method == "Error" else f"LLM-{_CHECKED_BY}",
        )
        if relevant:
            return result
        return self._with_alternatives(
            result,
            action=action,
            context=ContactContext(contact_id=action.contact_id),
            settings=settings,
        )

    async def _append_audit(
        self, *, result: ActionRelevanceResult, tenant_id: str | None
    ) -> None:
        try:
            await self._audit.append_audit(
                entry=ValidationAuditEntry(tenant_id=tenant_id, result=result)
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Validation audit append failed: action_id=%s trace_id=%s error=%s",
                result.action_id,
                result.trace_id,
                exc,
            )


def _is_stale(context: ContactContext, settings: ActionRelevanceSettings) -> bool:
    age = utc_now() - context.retrieved_at
    return age > timedelta(minutes=settings.max_context_age_minutes)
