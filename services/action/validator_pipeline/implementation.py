"""Concrete Validator Pipeline running privacy, risk, relevance, and approval."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from packages.crm_shared.config import CrmSettings
from packages.crm_shared.envelope import EnvelopeKind, new_meta
from packages.crm_shared.errors import ErrorDetail, codes, internal_error
from packages.crm_shared.logging import get_logger, public_api_instrumented
from services.action.action_relevance.config import ActionRelevanceSettings
from services.action.action_relevance.domain import (
    ActionRelevanceRequest,
    ActionRelevanceResult,
    ComplianceViolation,
    ContactContext,
    ScheduledAction,
)
from services.action.action_relevance.service import (
    ActionRelevanceService,
    build_action_relevance_service,
)
from services.action.agent_planner.domain import PlannedExecution
from services.action.approval_workflow.domain import UserApprovalRequest
from services.action.approval_workflow.service import (
    ApprovalWorkflowService,
    build_approval_workflow_service,
)
from services.action.contracts import ValidationContext, utc_now
from services.action.procedural_memory.domain import ReplayPlan
from services.action.validator_pipeline.component import SERVICE_COMPONENT_ID
from services.action.validator_pipeline.config import (
    ValidatorPipelineSettings,
    resolve_validator_pipeline_settings,
)
from services.action.validator_pipeline.domain import (
    ValidationStage,
    ValidationVerdict,
)
from services.action.validator_pipeline.service import ValidatorPipelineService
from services.action.validator_pipeline.stages import (
    is_after_hours,
    privacy_blocked,
    scheduled_action_from_context,
)

_LOGGER = get_logger(__name__)

_AGENT_TYPE = "orchestrator"
_VIOLATION_PRIVACY_TAG = "privacy_tag"


class DefaultValidatorPipelineService(ValidatorPipelineService):
    """Default staged validator over relevance and approval services."""

    def __init__(
        self,
        *,
        settings: ValidatorPipelineSettings,
        relevance_service: ActionRelevanceService,
        approval_service: ApprovalWorkflowService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._relevance = relevance_service
        self._approvals = approval_service
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: CrmSettings,
        *,
        relevance_service: ActionRelevanceService | None = None,
        approval_service: ApprovalWorkflowService | None = None,
    ) -> "DefaultValidatorPipelineService":
        """Build validator pipeline from typed root runtime settings."""
        return cls(
            settings=resolve_validator_pipeline_settings(settings),
            relevance_service=relevance_service
            or build_action_relevance_service(settings=settings),
            approval_service=approval_service
            or build_approval_workflow_service(settings=settings),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def validate_replay(
        self,
        *,
        plan: ReplayPlan,
        context: ValidationContext,
        settings: ValidatorPipelineSettings | None = None,
        relevance_settings: ActionRelevanceSettings | None = None,
        record_approval: bool = True,
    ) -> ValidationVerdict:
        _LOGGER.info(
            "Validating replay: procedure_id=%s version=%s organization_id=%s "
            "trace_id=%s",
            plan.procedure_id,
            plan.version,
            context.organization_id,
            context.trace_id,
        )
        return await self._run(
            context=context,
            description=f"Replay {plan.action_type} procedure v{plan.version}",
            planned=None,
            settings=settings or self._settings,
            relevance_settings=relevance_settings,
            record_approval=record_approval,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    async def validate_planned(
        self,
        *,
        plan: PlannedExecution,
        context: ValidationContext,
        settings: ValidatorPipelineSettings | None = None,
        relevance_settings: ActionRelevanceSettings | None = None,
    ) -> ValidationVerdict:
        _LOGGER.info(
            "Validating planned execution: trace_id=%s organization_id=%s "
            "confidence=%s",
            plan.trace_id,
            context.organization_id,
            plan.confidence,
        )
        return await self._run(
            context=context,
            description=f"Planned {context.action_type} via {context.channel}",
            planned=plan,
            settings=settings or self._settings,
            relevance_settings=relevance_settings,
            record_approval=True,
        )

    async def _run(
        self,
        *,
        context: ValidationContext,
        description: str,
        planned: PlannedExecution | None,
        settings: ValidatorPipelineSettings,
        relevance_settings: ActionRelevanceSettings | None,
        record_approval: bool,
    ) -> ValidationVerdict:
        """Run every stage in order; the first blocking stage decides."""
        now = self._clock()
        action = scheduled_action_from_context(
            context, description=description, now=now
        )

        if privacy_blocked(context, settings):
            if settings.record_privacy_violations:
                await self._record_violation(
                    context, violation_type=_VIOLATION_PRIVACY_TAG
                )
            return ValidationVerdict(
                allowed=False,
                reason=f"Blocked: {settings.privacy_tag} tag",
                stage="privacy",
                alternatives=self._alternatives(
                    action, context, relevance_settings=relevance_settings
                ),
            )

        if planned is not None and planned.failed:
            error = planned.error
            return ValidationVerdict(
                allowed=False,
                reason="Blocked: planning failed",
                stage="planner",
                error=error,
            )

        override_reasons: list[str] = []
        if planned is not None:
            if is_after_hours(context, settings, now=now):
                override_reasons.append("after-hours SMS")
            if planned.confidence < settings.min_planner_confidence:
                override_reasons.append("low confidence")

        if settings.enable_relevance_check and context.contact_id:
            relevance = await self._relevance.validate_action_relevance(
                request=ActionRelevanceRequest(
                    action=action,
                    user_overrides=dict(context.user_overrides),
                    user_id=context.user_id,
                    trace_id=context.trace_id,
                ),
                settings=relevance_settings,
            )
            if not relevance.is_relevant:
                return ValidationVerdict(
                    allowed=False,
                    reason=relevance.reason,
                    stage="relevance",
                    relevance=relevance,
                    alternatives=self._alternatives(
                        action,
                        context,
                        suggested=relevance.alternative_actions,
                        relevance_settings=relevance_settings,
                    ),
                )
        else:
            relevance = _skipped_relevance(action)

        if override_reasons:
            return await self._approval_verdict(
                action=action,
                context=context,
                relevance=relevance,
                reason="Override: " + " or ".join(override_reasons),
                stage="risk",
                gate_enabled=settings.enable_approval_gate,
                record=record_approval,
            )

        if settings.enable_approval_gate and await self._relevance.requires_approval(
            action=action,
            relevance=relevance,
            user_id=context.user_id,
            tenant_id=context.tenant_id,
            overrides=context.user_overrides,
            trace_id=context.trace_id,
            settings=relevance_settings,
        ):
            return await self._approval_verdict(
                action=action,
                context=context,
                relevance=relevance,
                reason="Approval required by override policy",
                stage="approval",
                gate_enabled=True,
                record=record_approval,
            )

        return ValidationVerdict(allowed=True, relevance=relevance)

    async def _approval_verdict(
        self,
        *,
        action: ScheduledAction,
        context: ValidationContext,
        relevance: ActionRelevanceResult,
        reason: str,
        stage: ValidationStage,
        gate_enabled: bool,
        record: bool,
    ) -> ValidationVerdict:
        """Return an override-required verdict, recording a request if gated."""
        request: UserApprovalRequest | None = None
        error: ErrorDetail | None = None
        if gate_enabled and record:
            request, error = await self._request_approval(
                action=action, context=context, relevance=relevance, reason=reason
            )
        return ValidationVerdict(
            allowed=False,
            override_required=True,
            reason=reason,
            stage=stage,
            relevance=relevance,
            approval_request=request,
            error=error,
        )

    async def _request_approval(
        self,
        *,
        action: ScheduledAction,
        context: ValidationContext,
        relevance: ActionRelevanceResult,
        reason: str,
    ) -> tuple[UserApprovalRequest | None, ErrorDetail | None]:
        envelope = await self._approvals.create_approval_request(
            meta=new_meta(
                kind=EnvelopeKind.COMMAND,
                source=str(SERVICE_COMPONENT_ID),
                principal=context.user_id,
                trace_id=context.trace_id,
            ),
            action=action,
            relevance_result=relevance,
            user_id=context.user_id,
            reason=reason,
            overrides=dict(context.user_overrides),
            tenant_id=context.tenant_id,
        )
        if envelope.ok and envelope.payload is not None:
            return envelope.payload.value, None
        _LOGGER.warning(
            "Approval request could not be recorded: trace_id=%s codes=%s",
            context.trace_id,
            ",".join(envelope.error_codes),
        )
        if envelope.errors:
            return None, envelope.errors[0]
        return None, internal_error(
            "approval request was not recorded",
            code=codes.INTERNAL_ERROR,
            metadata={"trace_id": context.trace_id},
        )

    def _alternatives(
        self,
        action: ScheduledAction,
        context: ValidationContext,
        *,
        suggested: tuple[str, ...] = (),
        relevance_settings: ActionRelevanceSettings | None,
    ) -> tuple[ScheduledAction, ...]:
        return self._relevance.suggest_alternative_actions(
            original_action=action,
            contact_context=ContactContext(
                contact_id=context.contact_id,
                organization_id=context.organization_id,
            ),
            suggested_types=suggested,
            trace_id=context.trace_id,
            settings=relevance_settings,
        )

    async def _record_violation(
        self, context: ValidationContext, *, violation_type: str
    ) -> None:
        violation = ComplianceViolation(
            tenant_id=context.tenant_id,
            violation_type=violation_type,
            agent_type=_AGENT_TYPE,
            action_type=context.action_type,
            trace_id=context.trace_id,
            severity="high",
        )
        try:
            await self._relevance.record_compliance_violation(violation=violation)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "Compliance violation not recorded: trace_id=%s error_type=%s",
                context.trace_id,
                type(exc).__name__,
            )


def _skipped_relevance(action: ScheduledAction) -> ActionRelevanceResult:
    return ActionRelevanceResult(
        is_relevant=True,
        confidence=1.0,
        reason="No contact in scope; relevance check skipped",
        validation_method="Skipped",
        action_id=action.id,
        contact_id=action.contact_id,
        action_type=action.action_type,
        trace_id=action.trace_id or "",
    )
