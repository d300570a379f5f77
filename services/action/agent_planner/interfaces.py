"""Protocol interfaces for planner collaborators."""

from __future__ import annotations

from typing import Protocol

from services.action.agent_planner.domain import (
    RemotePlan,
    RetrievalQuery,
    RetrievedContext,
)


class ContextRetriever(Protocol):
    """Retrieve rolling summary and redacted snippets for one request."""

    async def retrieve(self, *, query: RetrievalQuery) -> RetrievedContext:
        """Return planning context scoped to the query's tenant."""


class RemotePlanner(Protocol):
    """Remote reasoning service proposing tool steps for one prompt."""

    async def propose(self, *, prompt: str, system_prompt: str) -> RemotePlan:
        """Return proposed steps; adapter failures propagate as ``AdapterError``."""
