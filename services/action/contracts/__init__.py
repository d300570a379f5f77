"""Shared action orchestration request/result contracts."""

from services.action.contracts.domain import (
    AgentRequest,
    DecisionPath,
    ExecutionResult,
    MalformedRequestError,
    ValidationContext,
    parse_agent_request,
    utc_now,
)
from services.action.contracts.fingerprint import build_context_fingerprint
from services.action.contracts.parameters import (
    ParameterTypeError,
    override_flag,
    override_text,
    parameter_datetime,
    parameter_float,
    parameter_str,
    parameter_tags,
)
from services.action.contracts.remote import (
    ModelProfileSettings,
    adapter_error_to_detail,
    extract_json_object,
)

__all__ = [
    "AgentRequest",
    "DecisionPath",
    "ExecutionResult",
    "MalformedRequestError",
    "ModelProfileSettings",
    "ParameterTypeError",
    "ValidationContext",
    "adapter_error_to_detail",
    "build_context_fingerprint",
    "extract_json_object",
    "override_flag",
    "override_text",
    "parameter_datetime",
    "parameter_float",
    "parameter_str",
    "parameter_tags",
    "parse_agent_request",
    "utc_now",
]
