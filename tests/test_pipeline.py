# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""End-to-end tests for :mod:`sabre.pipeline` with in-memory collaborators."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from helpers.doubles import FakeService, build_harness, contract_output, solc_output

from sabre.config import Config
from sabre.errors import ConfigError, FormatError, ModeError
from sabre.models import JobStatus
from sabre.pipeline import (
    AnalysisRequest,
    OutcomeKind,
    Stage,
    build_severity_rules,
)
from sabre.severity import Severity

MAIN = """pragma solidity ^0.5.0;

import "./Ownable.sol";
import "./lib/SafeMath.sol";

contract Token is Ownable {
    using SafeMath for uint256;
    function withdraw(uint256 amount) public {
        msg.sender.call.value(amount)("");
    }
}
"""
OWNABLE = "pragma solidity ^0.5.0;\n\ncontract Ownable {}\n"
SAFE_MATH = "pragma solidity ^0.5.0;\n\nlibrary SafeMath {}\n"
UNITS = ["contracts/Token.sol", "contracts/Ownable.sol", "contracts/lib/SafeMath.sol"]
FILES = {
    "contracts/Token.sol": MAIN,
    "contracts/Ownable.sol": OWNABLE,
    "contracts/lib/SafeMath.sol": SAFE_MATH,
}


def _output() -> dict[str, Any]:
    return solc_output(
        {
            "contracts/Token.sol": {"Token": contract_output(hashes={"withdraw(uint256)": "2e1a7d4d"})},
            "contracts/Ownable.sol": {"Ownable": contract_output("")},
            "contracts/lib/SafeMath.sol": {"SafeMath": contract_output("")},
        },
        UNITS,
    )


def _reentrancy(offset: int) -> dict[str, Any]:
    return {
        "swcID": "SWC-107",
        "swcTitle": "Reentrancy",
        "description": {"head": "Reentrancy risk.", "tail": "A call to a user-supplied address is executed."},
        "severity": "High",
        "locations": [{"sourceMap": f"{offset}:10:0"}],
        "extra": {},
    }


def _run(harness, request: AnalysisRequest):
    return asyncio.run(harness.pipeline.run(request))


def test_clean_run_reports_no_findings() -> None:
    service = FakeService(reports=[{"issues": [], "sourceList": UNITS}])
    harness = build_harness(FILES, _output(), service)

    outcome = _run(harness, AnalysisRequest.from_options("contracts/Token.sol"))

    assert outcome.kind is OutcomeKind.CLEAN
    assert outcome.message == "No errors/warnings found in contracts/Token.sol for contract: Token"
    assert outcome.findings == []
    assert outcome.solc_version == "0.5.17"
    assert outcome.uuid == "job-1"
    assert service.calls == ["authenticate", "submit", "status", "results"]


def test_imports_are_compiled_and_duplicates_reported_once() -> None:
    offset = MAIN.index("msg.sender")
    report = {"issues": [_reentrancy(offset)] * 3, "sourceList": UNITS, "sourceFormat": "text"}
    service = FakeService(reports=[report])
    harness = build_harness(FILES, _output(), service)

    outcome = _run(harness, AnalysisRequest.from_options("contracts/Token.sol", output_format="json"))

    assert outcome.kind is OutcomeKind.FINDINGS
    assert len(outcome.findings) == 1
    finding = outcome.findings[0]
    assert finding.severity is Severity.ERROR
    assert finding.location is not None
    assert (finding.location.file, finding.location.line, finding.location.column) == ("contracts/Token.sol", 9, 9)

    (result,) = json.loads(outcome.rendered)
    assert result["filePath"] == "contracts/Token.sol"
    assert result["messages"][0]["line"] == 9

    (payload,) = harness.runner.payloads
    assert list(payload["sources"]) == UNITS
    submitted = service.payloads[0]["data"]
    assert submitted["contractName"] == "Token"
    assert set(submitted["sources"]) == set(UNITS)


def test_malformed_pragma_stops_before_any_remote_work() -> None:
    harness = build_harness({"Broken.sol": "pragma solidity ^^0.5.0;\ncontract Broken {}\n"}, _output(), FakeService())

    outcome = _run(harness, AnalysisRequest.from_options("Broken.sol"))

    assert outcome.failed
    assert outcome.stage is Stage.DETECT_VERSION
    assert outcome.error_kind == "VersionError"
    assert "^^0.5.0" in outcome.message
    assert harness.fetcher.total_calls == 0
    assert harness.store.loads == 0
    assert harness.runner.payloads == []
    assert harness.service.calls == []


def test_missing_entry_file_fails_at_read_stage() -> None:
    harness = build_harness({}, _output(), FakeService())

    outcome = _run(harness, AnalysisRequest.from_options("Missing.sol"))

    assert outcome.stage is Stage.READ_INPUT
    assert outcome.error_kind == "ResolutionError"


def test_compiler_errors_fail_at_compile_stage() -> None:
    error = {
        "severity": "error",
        "type": "ParserError",
        "message": "Expected ';' but got '}'",
        "formattedMessage": "contracts/Token.sol:9:9: ParserError: Expected ';' but got '}'",
    }
    output = solc_output({}, UNITS, errors=[error])
    harness = build_harness(FILES, output, FakeService())

    outcome = _run(harness, AnalysisRequest.from_options("contracts/Token.sol"))

    assert outcome.stage is Stage.COMPILE
    assert outcome.error_kind == "CompilationError"
    assert "ParserError" in outcome.message
    assert harness.service.calls == []


def test_remote_failure_discards_partial_results() -> None:
    service = FakeService(statuses=[JobStatus.PENDING, JobStatus.FAILED])
    harness = build_harness(FILES, _output(), service)

    outcome = _run(harness, AnalysisRequest.from_options("contracts/Token.sol"))

    assert outcome.stage is Stage.ANALYSE
    assert outcome.error_kind == "AnalysisFailed"
    assert outcome.findings == []
    assert outcome.rendered == ""
    assert "results" not in service.calls


def test_second_run_reuses_cached_compiler() -> None:
    service = FakeService(reports=[])
    harness = build_harness(FILES, _output(), service)
    request = AnalysisRequest.from_options("contracts/Token.sol")

    _run(harness, request)
    _run(harness, request)

    assert harness.fetcher.calls == {"0.5.17": 1}


class RecordingHooks:
    def __init__(self) -> None:
        self.events: list[tuple[str, Stage]] = []

    def on_stage_start(self, stage: Stage) -> None:
        self.events.append(("start", stage))

    def on_stage_done(self, stage: Stage) -> None:
        self.events.append(("done", stage))


def test_hooks_see_every_stage_in_order() -> None:
    harness = build_harness(FILES, _output(), FakeService(reports=[]))
    hooks = RecordingHooks()
    harness.pipeline.hooks = hooks

    _run(harness, AnalysisRequest.from_options("contracts/Token.sol"))

    started = [stage for event, stage in hooks.events if event == "start"]
    assert started == list(Stage)
    assert hooks.events[-1] == ("done", Stage.REPORT)


def test_hooks_stop_at_the_failing_stage() -> None:
    harness = build_harness({"Broken.sol": "contract Broken {}\n"}, _output(), FakeService())
    hooks = RecordingHooks()
    harness.pipeline.hooks = hooks

    outcome = _run(harness, AnalysisRequest.from_options("Broken.sol"))

    assert outcome.stage is Stage.DETECT_VERSION
    assert hooks.events == [
        ("start", Stage.READ_INPUT),
        ("done", Stage.READ_INPUT),
        ("start", Stage.DETECT_VERSION),
    ]


def test_request_rejects_unknown_format_and_mode() -> None:
    with pytest.raises(FormatError):
        AnalysisRequest.from_options("Token.sol", output_format="xml")
    with pytest.raises(ModeError) as excinfo:
        AnalysisRequest.from_options("Token.sol", mode="deep")
    assert excinfo.value.kind == "ModeError"
    assert "Available modes: quick, full" in str(excinfo.value)


def test_severity_rules_are_validated() -> None:
    config = Config.model_validate({"output": {"severity_rules": ["SWC-107=note"]}})
    rules = build_severity_rules(config)
    ((pattern, level),) = rules["*"]
    assert pattern.pattern == "SWC-107"
    assert level is Severity.NOTE

    broken = Config.model_validate({"output": {"severity_rules": ["SWC-107"]}})
    with pytest.raises(ConfigError):
        build_severity_rules(broken)


def test_entry_file_is_read_once_per_run() -> None:
    harness = build_harness(FILES, _output(), FakeService(reports=[]))

    outcome = _run(harness, AnalysisRequest.from_options("contracts/Token.sol"))

    assert outcome.kind is OutcomeKind.CLEAN
    assert harness.filesystem.reads == {
        "contracts/Token.sol": 1,
        "contracts/Ownable.sol": 1,
        "contracts/lib/SafeMath.sol": 1,
    }
