"""Prompt composition for the remote planner."""

from __future__ import annotations

from services.action.agent_planner.domain import RetrievedContext
from services.action.contracts import AgentRequest

PLANNER_SYSTEM_PROMPT = (
    "You are a CRM action planner. Propose the minimal ordered list of tool "
    "steps that accomplishes the requested action while following every "
    "organization policy. Respond only with JSON of the form "
    '{"steps": [{"tool": "<name>", "arguments": {}}], "confidence": <0.0-1.0>}.'
)


def compose_system_directive(context: RetrievedContext) -> str:
    """Return the system prompt extended with retrieved policy directives."""
    directives = [line.strip() for line in context.policy_directives if line.strip()]
    if not directives:
        return PLANNER_SYSTEM_PROMPT
    listed = "\n".join(f"- {line}" for line in directives)
    return f"{PLANNER_SYSTEM_PROMPT}\n\nOrganization policies:\n{listed}"


def compose_planner_prompt(
    request: AgentRequest,
    context: RetrievedContext,
    *,
    max_snippets: int = 20,
    max_snippet_chars: int = 500,
) -> str:
    """Render one planning prompt from request scope and retrieved context.

    Snippets are already redacted by the retriever; they are only truncated
    here.
    """
    snippets = [
        f"- [{snippet.kind}:{snippet.ref_id}] "
        f"{snippet.redacted_text[:max_snippet_chars]}"
        for snippet in context.snippets[:max_snippets]
    ]
    lines = [
        f"ActionType={request.action_type}",
        f"Channel={request.channel}",
        f"Industry={request.industry or 'unspecified'}",
        f"RiskBand={request.risk_band}",
        f"RollingSummary: {context.rolling_summary or 'none'}",
        "Context Snippets:",
        *(snippets or ["- none"]),
        "Follow org policies and propose minimal tool steps.",
    ]
    return "\n".join(lines)
