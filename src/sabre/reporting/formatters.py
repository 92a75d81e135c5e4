# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Render reduced findings in the supported report formats."""

from __future__ import annotations

import html
import json
from collections import OrderedDict
from collections.abc import Sequence
from enum import Enum
from io import StringIO
from typing import Any, Final, assert_never

from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..errors import FormatError
from ..models import Finding, SourceLocation
from ..severity import SEVERITY_ORDER, Severity, eslint_level, severity_label

UNKNOWN_FILE: Final[str] = "<unknown>"
TABLE_WIDTH: Final[int] = 120
_TEXT_RULE: Final[str] = "-" * 60


class OutputFormat(str, Enum):
    """Closed set of report formats accepted by ``--format``."""

    TEXT = "text"
    STYLISH = "stylish"
    COMPACT = "compact"
    TABLE = "table"
    HTML = "html"
    JSON = "json"


def parse_format(name: str) -> OutputFormat:
    """Return the :class:`OutputFormat` called ``name``.

    Raises:
        FormatError: ``name`` is not one of the supported formats.
    """

    try:
        return OutputFormat(name.strip().lower())
    except ValueError:
        choices = ", ".join(fmt.value for fmt in OutputFormat)
        raise FormatError(f"Invalid output format '{name}'. Available formats: {choices}.") from None


def render(fmt: OutputFormat, findings: Sequence[Finding]) -> str:
    """Render ``findings`` using ``fmt``."""

    match fmt:
        case OutputFormat.TEXT:
            return render_text(findings)
        case OutputFormat.STYLISH:
            return render_stylish(findings)
        case OutputFormat.COMPACT:
            return render_compact(findings)
        case OutputFormat.TABLE:
            return render_table(findings)
        case OutputFormat.HTML:
            return render_html(findings)
        case OutputFormat.JSON:
            return render_json(findings)
        case _:
            assert_never(fmt)


def render_text(findings: Sequence[Finding]) -> str:
    blocks: list[str] = []
    for finding in findings:
        lines = [f"==== {finding.title or finding.rule_id} ===="]
        lines.append(f"Severity: {severity_label(finding.severity)}")
        lines.append(f"Rule: {finding.rule_id}")
        if finding.location is not None:
            lines.append(f"File: {finding.location.file}")
            lines.append(f"Line: {finding.location.line}, column: {finding.location.column}")
        else:
            lines.append(f"File: {UNKNOWN_FILE}")
        if finding.function:
            lines.append(f"Function: {finding.function}")
        lines.append(finding.message)
        lines.append(_TEXT_RULE)
        blocks.append("\n".join(lines))
    return "\n".join(blocks) + "\n" if blocks else ""


def render_stylish(findings: Sequence[Finding]) -> str:
    if not findings:
        return ""
    output: list[str] = []
    for file_path, group in _group_by_file(findings).items():
        output.append("")
        output.append(file_path or UNKNOWN_FILE)
        rows = [
            (
                _position(finding.location),
                finding.severity.value,
                finding.message,
                finding.rule_id,
            )
            for finding in group
        ]
        pos_width = max(len(row[0]) for row in rows)
        sev_width = max(len(row[1]) for row in rows)
        msg_width = max(len(row[2]) for row in rows)
        for position, severity, message, rule in rows:
            output.append(
                f"  {position.ljust(pos_width)}  {severity.ljust(sev_width)}  {message.ljust(msg_width)}  {rule}",
            )
    errors, warnings = _tally(findings)
    output.append("")
    output.append(f"✖ {_plural(len(findings), 'problem')} ({_plural(errors, 'error')}, {_plural(warnings, 'warning')})")
    return "\n".join(output) + "\n"


def render_compact(findings: Sequence[Finding]) -> str:
    if not findings:
        return ""
    lines: list[str] = []
    for finding in findings:
        location = finding.location
        file_path = location.file if location else UNKNOWN_FILE
        line = location.line if location else 0
        column = location.column if location else 0
        level = "Error" if finding.severity is Severity.ERROR else "Warning"
        lines.append(f"{file_path}: line {line}, col {column}, {level} - {finding.message} ({finding.rule_id})")
    lines.append("")
    lines.append(_plural(len(findings), "problem"))
    return "\n".join(lines) + "\n"


def render_table(findings: Sequence[Finding]) -> str:
    table = Table(box=box.SIMPLE, show_lines=False, header_style="bold")
    table.add_column("Severity", no_wrap=True)
    table.add_column("Rule", no_wrap=True)
    table.add_column("Location", no_wrap=True)
    table.add_column("Function", overflow="fold")
    table.add_column("Message", overflow="fold")
    ordered = sorted(findings, key=lambda item: SEVERITY_ORDER.get(item.severity, len(SEVERITY_ORDER)))
    for finding in ordered:
        table.add_row(
            *(
                Text(cell)
                for cell in (
                    severity_label(finding.severity),
                    finding.rule_id,
                    _location_label(finding.location),
                    finding.function or "",
                    finding.message,
                )
            ),
        )
    buffer = StringIO()
    console = Console(file=buffer, width=TABLE_WIDTH, color_system=None, force_terminal=False)
    console.print(table)
    return buffer.getvalue()


def render_html(findings: Sequence[Finding]) -> str:
    errors, warnings = _tally(findings)
    rows: list[str] = []
    for finding in findings:
        cells = (
            severity_label(finding.severity),
            finding.rule_id,
            _location_label(finding.location),
            finding.function or "",
            finding.message,
        )
        rows.append(
            f'    <tr class="{finding.severity.value}">'
            + "".join(f"<td>{html.escape(cell)}</td>" for cell in cells)
            + "</tr>",
        )
    body = "\n".join(rows)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '  <meta charset="utf-8">\n'
        "  <title>Sabre analysis report</title>\n"
        "</head>\n"
        "<body>\n"
        f"  <h1>{_plural(len(findings), 'problem')} ({_plural(errors, 'error')}, {_plural(warnings, 'warning')})</h1>\n"
        "  <table>\n"
        "    <tr><th>Severity</th><th>Rule</th><th>Location</th><th>Function</th><th>Message</th></tr>\n"
        f"{body}\n"
        "  </table>\n"
        "</body>\n"
        "</html>\n"
    )


def render_json(findings: Sequence[Finding]) -> str:
    """Emit an eslint-compatible result list grouped by file."""

    results: list[dict[str, Any]] = []
    for file_path, group in _group_by_file(findings).items():
        errors, warnings = _tally(group)
        results.append(
            {
                "filePath": file_path,
                "messages": [_json_message(finding) for finding in group],
                "errorCount": errors,
                "warningCount": warnings,
            },
        )
    return json.dumps(results, indent=2)


def parse_json_report(text: str) -> list[Finding]:
    """Rebuild findings from :func:`render_json` output.

    Raises:
        FormatError: ``text`` is not a JSON report produced by this module.
    """

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FormatError(f"invalid JSON report: {exc}") from exc
    if not isinstance(payload, list):
        raise FormatError("JSON report must be a list of file results")
    findings: list[Finding] = []
    try:
        for result in payload:
            file_path = result.get("filePath")
            for message in result.get("messages", []):
                findings.append(_finding_from_message(file_path, message))
    except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as exc:
        raise FormatError(f"malformed JSON report: {exc}") from exc
    return findings


def _json_message(finding: Finding) -> dict[str, Any]:
    location = finding.location
    return {
        "ruleId": finding.rule_id,
        "title": finding.title,
        "severity": eslint_level(finding.severity),
        "level": finding.severity.value,
        "message": finding.message,
        "line": location.line if location else None,
        "column": location.column if location else None,
        "endLine": location.end_line if location else None,
        "endColumn": location.end_column if location else None,
        "function": finding.function,
    }


def _finding_from_message(file_path: str | None, message: dict[str, Any]) -> Finding:
    location = None
    if file_path is not None and message.get("line") is not None:
        location = SourceLocation(
            file=file_path,
            line=message["line"],
            column=message.get("column") or 0,
            end_line=message.get("endLine"),
            end_column=message.get("endColumn"),
        )
    level = message.get("level")
    severity = Severity(level) if level else (Severity.ERROR if message.get("severity") == 2 else Severity.WARNING)
    return Finding(
        rule_id=message["ruleId"],
        title=message.get("title") or "",
        severity=severity,
        message=message["message"],
        location=location,
        function=message.get("function"),
    )


def _group_by_file(findings: Sequence[Finding]) -> OrderedDict[str | None, list[Finding]]:
    groups: OrderedDict[str | None, list[Finding]] = OrderedDict()
    for finding in findings:
        key = finding.location.file if finding.location else None
        groups.setdefault(key, []).append(finding)
    return groups


def _tally(findings: Sequence[Finding]) -> tuple[int, int]:
    errors = sum(1 for finding in findings if finding.severity is Severity.ERROR)
    return errors, len(findings) - errors


def _position(location: SourceLocation | None) -> str:
    if location is None:
        return "0:0"
    return f"{location.line}:{location.column}"


def _location_label(location: SourceLocation | None) -> str:
    if location is None:
        return UNKNOWN_FILE
    return f"{location.file}:{location.line}:{location.column}"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


__all__ = [
    "OutputFormat",
    "parse_format",
    "parse_json_report",
    "render",
    "render_compact",
    "render_html",
    "render_json",
    "render_stylish",
    "render_table",
    "render_text",
]
