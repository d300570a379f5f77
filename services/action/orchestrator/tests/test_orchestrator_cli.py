"""Tests for the single-request orchestrator command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import pytest

import services.action.orchestrator.__main__ as cli
from services.action.contracts import ExecutionResult


class _StubOrchestrator:
    """Orchestrator returning a fixed result and recording payloads."""

    def __init__(self, result: ExecutionResult) -> None:
        self.result = result
        self.payloads: list[Mapping[str, Any]] = []

    async def handle_payload(
        self, *, payload: Mapping[str, Any], snapshot: object = None
    ) -> ExecutionResult:
        del snapshot
        self.payloads.append(payload)
        return self.result


@pytest.fixture
def stub(monkeypatch: pytest.MonkeyPatch) -> _StubOrchestrator:
    orchestrator = _StubOrchestrator(
        ExecutionResult(success=True, message="executed", trace_id="t-1")
    )
    monkeypatch.setattr(cli, "configure_logging", lambda settings: None)
    monkeypatch.setattr(
        cli, "build_orchestrator_service", lambda *, settings: orchestrator
    )
    return orchestrator


def test_request_file_is_handled_and_result_printed(
    stub: _StubOrchestrator, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    """The parsed mapping reaches the orchestrator and the result is JSON."""
    request = tmp_path / "request.json"
    request.write_text(json.dumps({"tenantId": "tenant-a"}), encoding="utf-8")

    exit_code = cli.main([str(request)])

    assert exit_code == 0
    assert stub.payloads == [{"tenantId": "tenant-a"}]
    printed = json.loads(capsys.readouterr().out)
    assert printed["success"] is True
    assert printed["trace_id"] == "t-1"


def test_failed_result_exits_non_zero(stub: _StubOrchestrator, tmp_path: Path) -> None:
    """A failed execution result maps to exit status 1."""
    stub.result = ExecutionResult(success=False, message="rejected")
    request = tmp_path / "request.json"
    request.write_text("{}", encoding="utf-8")

    assert cli.main([str(request)]) == 1


def test_non_object_request_is_refused(stub: _StubOrchestrator, tmp_path: Path) -> None:
    """Only JSON objects are handed to the orchestrator."""
    request = tmp_path / "request.json"
    request.write_text("[1, 2]", encoding="utf-8")

    assert cli.main([str(request)]) == 2
    assert stub.payloads == []
