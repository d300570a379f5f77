"""Canonical logging field names for cross-service consistency."""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Envelope/correlation fields.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
PRINCIPAL = "principal"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"

# Tenancy fields.
TENANT_ID = "tenant_id"
ORGANIZATION_ID = "organization_id"
USER_ID = "user_id"
CONTACT_ID = "contact_id"

# Orchestration decision fields.
ORCHESTRATION_DECISION_EVENT = "orchestration_decision"
DECISION_PATH = "decision_path"
OVERRIDE_REQUIRED = "override_required"
REPLAY = "replay"
FALLBACK = "fallback"
PROCEDURE_ID = "procedure_id"
PROCEDURE_VERSION = "procedure_version"
ACTION_TYPE = "action_type"
CHANNEL = "channel"
REASON = "reason"
ATTEMPT = "attempt"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
