# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for report rendering."""

from __future__ import annotations

import json

import pytest

from sabre.errors import FormatError
from sabre.models import Finding, SourceLocation
from sabre.reporting import OutputFormat, parse_format, parse_json_report, render
from sabre.severity import Severity

FINDINGS = [
    Finding(
        rule_id="SWC-107",
        title="Reentrancy",
        severity=Severity.ERROR,
        message="Reentrancy risk. A call to a user-supplied address is executed.",
        location=SourceLocation(file="contracts/Token.sol", line=7, column=9, end_line=7, end_column=19),
        function="withdraw(uint256)",
    ),
    Finding(
        rule_id="SWC-120",
        title="Weak Sources of Randomness",
        severity=Severity.WARNING,
        message="Potential use of block.number as source of randomness.",
        location=SourceLocation(file="contracts/lib/Lottery.sol", line=12, column=5),
    ),
    Finding(
        rule_id="SWC-103",
        title="Floating Pragma",
        severity=Severity.NOTICE,
        message="A floating pragma is set.",
    ),
]


@pytest.mark.parametrize("fmt", list(OutputFormat))
def test_every_format_mentions_rule_message_and_line(fmt: OutputFormat) -> None:
    output = render(fmt, FINDINGS)

    assert "SWC-107" in output
    assert "Reentrancy risk." in output
    assert "7" in output
    assert "contracts/Token.sol" in output


def test_parse_format_is_case_insensitive() -> None:
    assert parse_format(" JSON ") is OutputFormat.JSON


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(FormatError, match="Available formats: text, stylish, compact, table, html, json"):
        parse_format("xml")


def test_stylish_groups_by_file_and_summarises() -> None:
    output = render(OutputFormat.STYLISH, FINDINGS)
    lines = output.splitlines()

    assert "contracts/Token.sol" in lines
    assert "<unknown>" in lines
    assert any(line.strip().startswith("7:9") and "error" in line for line in lines)
    assert lines[-1] == "✖ 3 problems (1 error, 2 warnings)"


def test_compact_has_one_line_per_finding() -> None:
    output = render(OutputFormat.COMPACT, FINDINGS)

    assert output.splitlines()[:3] == [
        "contracts/Token.sol: line 7, col 9, Error - Reentrancy risk. A call to a user-supplied address is executed. (SWC-107)",
        "contracts/lib/Lottery.sol: line 12, col 5, Warning - Potential use of block.number as source of randomness. (SWC-120)",
        "<unknown>: line 0, col 0, Warning - A floating pragma is set. (SWC-103)",
    ]


def test_text_shows_function_and_severity_label() -> None:
    output = render(OutputFormat.TEXT, FINDINGS[:1])

    assert "==== Reentrancy ====" in output
    assert "Severity: High" in output
    assert "Function: withdraw(uint256)" in output
    assert "Line: 7, column: 9" in output


def test_html_escapes_content() -> None:
    finding = FINDINGS[0].model_copy(update={"message": "uses <script> & friends"})

    output = render(OutputFormat.HTML, [finding])

    assert "&lt;script&gt; &amp; friends" in output
    assert "<script>" not in output


def test_json_is_eslint_shaped() -> None:
    payload = json.loads(render(OutputFormat.JSON, FINDINGS))

    assert [result["filePath"] for result in payload] == ["contracts/Token.sol", "contracts/lib/Lottery.sol", None]
    message = payload[0]["messages"][0]
    assert message["ruleId"] == "SWC-107"
    assert message["severity"] == 2
    assert (message["line"], message["column"], message["endLine"], message["endColumn"]) == (7, 9, 7, 19)
    assert payload[0]["errorCount"] == 1
    assert payload[1]["warningCount"] == 1


def test_json_report_parses_back_to_findings() -> None:
    parsed = parse_json_report(render(OutputFormat.JSON, FINDINGS))

    assert parsed == FINDINGS


def test_json_parser_rejects_garbage() -> None:
    with pytest.raises(FormatError):
        parse_json_report("{not json")
    with pytest.raises(FormatError):
        parse_json_report('{"filePath": "x"}')
    with pytest.raises(FormatError):
        parse_json_report('[{"filePath": "x", "messages": [{"severity": 2}]}]')


def test_empty_findings_render_without_errors() -> None:
    for fmt in OutputFormat:
        render(fmt, [])
    assert json.loads(render(OutputFormat.JSON, [])) == []
