"""Instrumentation decorator shared by every service public API method.

``public_api_instrumented`` wraps sync and async methods alike and fans each
call out to a chain of concerns: structured logging when a logger is given,
plus OpenTelemetry tracing and metrics whenever ``opentelemetry`` can be
imported. A concern that raises is reported and skipped; it never changes
the wrapped call's result.

Correlation ids come from an envelope ``meta`` keyword argument when one is
present, otherwise from a ``request``/``context``/``trace`` keyword argument
that carries ``trace_id`` and ``tenant_id`` attributes.
"""

from __future__ import annotations

import inspect
from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from packages.crm_shared.config import load_settings

from . import fields
from .context import log_context

_CORRELATION_KWARGS = ("request", "context", "trace")


@dataclass(frozen=True)
class InvocationContext:
    """Who called which public API method, and for which tenant/trace."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]
    tenant_id: str | None = None


@dataclass(frozen=True)
class CompletionContext:
    """How one public API call ended."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook pair notified at the start and end of every instrumented call."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Called before the wrapped method runs."""

    def on_completion(self, context: CompletionContext) -> None:
        """Called after the wrapped method returns or raises."""


class PublicApiLoggingConcern:
    """Debug line on entry; info on success, warning on failure."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_context_fields(context)):
            self._logger.debug("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        values = _context_fields(context.invocation)
        values[fields.EVENT] = fields.PUBLIC_API_COMPLETION_EVENT
        values[fields.SUCCESS] = context.success
        values[fields.DURATION_MS] = context.duration_ms
        if context.errors:
            values[fields.ERRORS] = "; ".join(context.errors)
        with log_context(values):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class PublicApiTracingConcern:
    """One span per call, named ``public_api.<component>.<method>``."""

    def __init__(self, *, tracer: Any) -> None:
        self._tracer = tracer
        self._open: ContextVar[tuple[tuple[Any, Any], ...]] = ContextVar(
            "crm_public_api_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        for key, value in _context_fields(context).items():
            if value is not None and key != fields.EVENT:
                span.set_attribute(key, value)
        self._open.set((*self._open.get(), (manager, span)))

    def on_completion(self, context: CompletionContext) -> None:
        stack = self._open.get()
        if not stack:
            return
        manager, span = stack[-1]
        self._open.set(stack[:-1])
        span.set_attribute(fields.SUCCESS, context.success)
        span.set_attribute(fields.DURATION_MS, context.duration_ms)
        if not context.success:
            _mark_span_failed(span, context.errors)
        manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Call count, latency histogram, and failures by error category."""

    def __init__(self, *, calls_total: Any, duration_ms: Any, errors_total: Any) -> None:
        self._calls_total = calls_total
        self._duration_ms = duration_ms
        self._errors_total = errors_total

    @classmethod
    def from_meter(cls, meter: Any) -> "PublicApiMetricsConcern":
        """Create the three instruments on ``meter`` using configured names."""
        names = load_settings().observability.public_api.otel
        return cls(
            calls_total=meter.create_counter(
                name=names.metric_public_api_calls_total,
                description="Public API calls by component, method and outcome.",
                unit="1",
            ),
            duration_ms=meter.create_histogram(
                name=names.metric_public_api_duration_ms,
                description="Public API call latency.",
                unit="ms",
            ),
            errors_total=meter.create_counter(
                name=names.metric_public_api_errors_total,
                description="Public API failures by error category.",
                unit="1",
            ),
        )

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        base = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
        }
        outcome = {**base, fields.OUTCOME: "success" if context.success else "failure"}
        self._calls_total.add(1, attributes=outcome)
        self._duration_ms.record(context.duration_ms, attributes=outcome)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors_total.add(1, attributes={**base, fields.ERROR_CATEGORY: category})


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Instrument one public API method.

    ``id_fields`` names keyword arguments copied verbatim into
    ``InvocationContext.references`` (for example ``request_id``).
    """
    chain: list[PublicApiInstrumentationConcern] = []
    if logger is not None:
        chain.append(PublicApiLoggingConcern(logger=logger))
    chain.extend(concerns or ())
    chain.extend(_otel_concerns())
    if not chain:
        raise ValueError("public_api_instrumented requires at least one concern")
    dispatch = _Dispatcher(concerns=tuple(chain), logger=logger)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        name = api_name or func.__name__

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                invocation = _invocation(component_id, name, id_fields, kwargs)
                started = dispatch.started(invocation)
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:  # noqa: BLE001
                    dispatch.raised(invocation, started, exc)
                    raise
                dispatch.returned(invocation, started, result)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            invocation = _invocation(component_id, name, id_fields, kwargs)
            started = dispatch.started(invocation)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:  # noqa: BLE001
                dispatch.raised(invocation, started, exc)
                raise
            dispatch.returned(invocation, started, result)
            return result

        return wrapper

    return decorator


@dataclass(frozen=True)
class _Dispatcher:
    """Deliver events to each concern, isolating concern failures."""

    concerns: tuple[PublicApiInstrumentationConcern, ...]
    logger: Any | None

    def started(self, invocation: InvocationContext) -> float:
        for concern in self.concerns:
            try:
                concern.on_invocation(invocation)
            except Exception as exc:  # noqa: BLE001
                self._concern_failed("invocation", concern, exc, invocation)
        return perf_counter()

    def returned(self, invocation: InvocationContext, started: float, result: object) -> None:
        success, errors, categories = _summarize(result)
        self._complete(invocation, started, success, errors, categories)

    def raised(self, invocation: InvocationContext, started: float, exc: Exception) -> None:
        summary = f"{type(exc).__name__}: {exc}"
        self._complete(invocation, started, False, [summary], ["internal"])

    def _complete(
        self,
        invocation: InvocationContext,
        started: float,
        success: bool,
        errors: list[str],
        categories: list[str],
    ) -> None:
        completion = CompletionContext(
            invocation=invocation,
            success=success,
            duration_ms=round((perf_counter() - started) * 1000.0, 3),
            errors=errors,
            error_categories=categories,
        )
        for concern in self.concerns:
            try:
                concern.on_completion(completion)
            except Exception as exc:  # noqa: BLE001
                self._concern_failed("completion", concern, exc, invocation)

    def _concern_failed(
        self,
        stage: str,
        concern: object,
        exc: Exception,
        invocation: InvocationContext,
    ) -> None:
        if self.logger is None:
            return
        with log_context(
            {
                fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
                fields.COMPONENT_ID: invocation.component_id,
                fields.API_NAME: invocation.api_name,
                fields.STAGE: stage,
                fields.CONCERN: type(concern).__name__,
                fields.ERRORS: f"{type(exc).__name__}: {exc}",
            }
        ):
            self.logger.warning("Public API instrumentation concern failed")


def _invocation(
    component_id: str,
    api_name: str,
    id_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> InvocationContext:
    meta = kwargs.get("meta")
    carrier = next(
        (kwargs[key] for key in _CORRELATION_KWARGS if kwargs.get(key) is not None),
        None,
    )
    return InvocationContext(
        component_id=component_id,
        api_name=api_name,
        trace_id=_attr_text(meta, "trace_id") or _attr_text(carrier, "trace_id"),
        envelope_id=_attr_text(meta, "envelope_id"),
        principal=_attr_text(meta, "principal"),
        tenant_id=_text(kwargs.get("tenant_id")) or _attr_text(carrier, "tenant_id"),
        references={
            name: str(kwargs[name])
            for name in id_fields
            if kwargs.get(name) not in (None, "")
        },
    )


def _attr_text(obj: object | None, name: str) -> str | None:
    return None if obj is None else _text(getattr(obj, name, None))


def _text(value: object) -> str | None:
    return None if value in (None, "") else str(value)


def _context_fields(context: InvocationContext) -> dict[str, object]:
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.TENANT_ID: context.tenant_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }


def _summarize(result: object) -> tuple[bool, list[str], list[str]]:
    """Return success, ``CODE: message`` summaries and error categories.

    Envelopes expose ``ok``/``errors``; execution results expose
    ``success``/``error``. Values with neither count as successes.
    """
    items = getattr(result, "errors", None)
    if not isinstance(items, list):
        single = getattr(result, "error", None)
        items = [] if single is None else [single]

    summaries: list[str] = []
    categories: list[str] = []
    for item in items:
        message = getattr(item, "message", None)
        code = getattr(item, "code", None)
        if message:
            summaries.append(f"{code}: {message}" if code else str(message))
        category = getattr(item, "category", None)
        category = getattr(category, "value", category)
        if category:
            categories.append(str(category))

    for flag in ("ok", "success"):
        value = getattr(result, flag, None)
        if isinstance(value, bool):
            return value, summaries, categories
    return not summaries, summaries, categories


def _mark_span_failed(span: Any, errors: list[str]) -> None:
    try:
        from opentelemetry.trace.status import Status, StatusCode
    except ImportError:
        return
    span.set_status(Status(StatusCode.ERROR))
    if errors:
        span.record_exception(RuntimeError("; ".join(errors[:3])))


@lru_cache(maxsize=1)
def _otel_concerns() -> tuple[PublicApiInstrumentationConcern, ...]:
    """Tracing and metrics concerns when ``opentelemetry`` is installed."""
    try:
        from opentelemetry import metrics, trace
    except ImportError:
        return ()
    names = load_settings().observability.public_api.otel
    return (
        PublicApiTracingConcern(tracer=trace.get_tracer(names.tracer_name)),
        PublicApiMetricsConcern.from_meter(metrics.get_meter(names.meter_name)),
    )
