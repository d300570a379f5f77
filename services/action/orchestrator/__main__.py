"""Run one agent request through the orchestrator from the command line.

Reads a JSON ``AgentRequest`` mapping from a file or stdin and prints the
``ExecutionResult`` as JSON. Exits non-zero when the result is a failure.

    python -m services.action.orchestrator --bootstrap request.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Sequence

from packages.crm_shared.config import CrmSettings, load_settings
from packages.crm_shared.logging import configure_logging, get_logger
from resources.substrates.postgres import (
    bootstrap_service_schemas,
    create_postgres_engine,
)
from resources.substrates.postgres.config import resolve_postgres_settings
from services.action.orchestrator.service import build_orchestrator_service

_LOGGER = get_logger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m services.action.orchestrator",
        description="Handle one agent request and print the execution result.",
    )
    parser.add_argument(
        "request",
        nargs="?",
        type=argparse.FileType("r", encoding="utf-8"),
        default=sys.stdin,
        help="JSON file holding the agent request (default: stdin)",
    )
    parser.add_argument(
        "--bootstrap",
        action="store_true",
        help="Create service schemas and tables before handling the request",
    )
    return parser.parse_args(argv)


async def _bootstrap(settings: CrmSettings) -> tuple[str, ...]:
    from services.action.action_relevance.component import (
        MANIFEST as RELEVANCE_MANIFEST,
    )
    from services.action.action_relevance.data.schema import (
        metadata as relevance_metadata,
    )
    from services.action.approval_workflow.component import (
        MANIFEST as APPROVAL_MANIFEST,
    )
    from services.action.approval_workflow.data.schema import (
        metadata as approval_metadata,
    )
    from services.action.procedural_memory.component import (
        MANIFEST as MEMORY_MANIFEST,
    )
    from services.action.procedural_memory.data.schema import (
        metadata as memory_metadata,
    )

    engine = create_postgres_engine(resolve_postgres_settings(settings))
    try:
        return await bootstrap_service_schemas(
            engine,
            services=(
                (MEMORY_MANIFEST, memory_metadata),
                (RELEVANCE_MANIFEST, relevance_metadata),
                (APPROVAL_MANIFEST, approval_metadata),
            ),
        )
    finally:
        await engine.dispose()


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings()
    configure_logging(settings.logging)

    try:
        payload: Any = json.load(args.request)
    except json.JSONDecodeError as exc:
        _LOGGER.error("Request is not valid JSON: %s", exc)
        return 2
    if not isinstance(payload, dict):
        _LOGGER.error("Request must be a JSON object")
        return 2

    if args.bootstrap:
        schemas = await _bootstrap(settings)
        _LOGGER.info("Service schemas ready: %s", ", ".join(schemas))

    service = build_orchestrator_service(settings=settings)
    result = await service.handle_payload(payload=payload)
    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


def main(argv: Sequence[str] | None = None) -> int:
    return asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
