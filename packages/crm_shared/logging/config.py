"""Stdout logging setup for CRM action services.

Every record is stamped with the active tenant/trace context. Context keys
that may carry contact PII are masked before they reach a handler.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from . import fields
from .context import bind_context, get_context

if TYPE_CHECKING:
    from packages.crm_shared.config import LoggingSettings

_MASK = "[REDACTED]"
_SENSITIVE_CONTEXT_KEYS = frozenset({"email", "phone", "phone_number", "address"})


def _record_context() -> dict[str, str]:
    return {
        key: _MASK if key.lower() in _SENSITIVE_CONTEXT_KEYS else value
        for key, value in get_context().items()
    }


class ContextFilter(logging.Filter):
    """Attach the current logging context to each record as ``crm_context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.crm_context = _record_context()
        return True


class StructuredFormatter(logging.Formatter):
    """Render records as one JSON object or as text with trailing ``k=v`` pairs."""

    def __init__(self, *, json_output: bool) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        context: dict[str, str] = getattr(record, "crm_context", None) or {}
        if not self._json_output:
            line = super().format(record)
            pairs = " ".join(f"{key}={context[key]}" for key in sorted(context))
            return f"{line} {pairs}" if pairs else line

        document: dict[str, Any] = {
            fields.TIMESTAMP: datetime.fromtimestamp(record.created, UTC).isoformat(),
            fields.LEVEL: record.levelname,
            fields.LOGGER: record.name,
            fields.MESSAGE: record.getMessage(),
            **context,
        }
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str, separators=(",", ":"))


def configure_logging(settings: LoggingSettings) -> logging.Handler:
    """Install a single stdout handler on the root logger and return it.

    Calling again replaces the previous handler, so repeated configuration
    never duplicates output. ``service`` and ``environment`` are bound into
    the base logging context.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(settings.level)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(StructuredFormatter(json_output=settings.json_output))
    root.addHandler(handler)

    bind_context(
        **{fields.SERVICE: settings.service, fields.ENVIRONMENT: settings.environment}
    )
    return handler


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a standard-library logger; configuration happens at the root."""
    return logging.getLogger(name)
