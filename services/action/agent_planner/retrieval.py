"""Default context retriever used when no retrieval backend is wired."""

from __future__ import annotations

from services.action.agent_planner.domain import RetrievalQuery, RetrievedContext
from services.action.agent_planner.interfaces import ContextRetriever


class EmptyContextRetriever(ContextRetriever):
    """Return no summary, snippets, or directives for every query."""

    async def retrieve(self, *, query: RetrievalQuery) -> RetrievedContext:
        del query
        return RetrievedContext()
