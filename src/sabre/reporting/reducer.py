# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Deduplicate raw service issues and map them onto source positions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import ValidationError

from ..compilation.sourcemap import LineIndex, SourceMapEntry, decompress_source_map, instruction_index
from ..models import CompiledArtifact, Finding, RawIssue, RawLocator, SourceLocation
from ..severity import SeverityRuleView, apply_severity_rules, severity_from_service

LOGGER = logging.getLogger(__name__)

UNKNOWN_RULE = "unknown"
_SELECTOR_HEX_LENGTH = 8


class _LocationResolver:
    """Per-run memo of line indexes and decoded source maps."""

    def __init__(self, artifact: CompiledArtifact, sources: Mapping[str, str]) -> None:
        self._artifact = artifact
        self._sources = sources
        self._lines: dict[str, LineIndex] = {}
        self._bytecode_maps: dict[str, tuple[dict[int, int], list[SourceMapEntry]]] = {}

    def resolve(self, locator: RawLocator) -> SourceLocation | None:
        if not locator.source_map:
            return None
        try:
            start, length, file_index = _split_locator(locator.source_map)
        except ValueError:
            return None

        files: Iterable[str] = locator.source_list or self._artifact.source_list
        if "bytecode" in (locator.source_format or "").lower():
            mapped = self._from_program_counter(start)
            if mapped is None:
                return None
            start, length, file_index = mapped
            files = self._artifact.source_list

        file_list = list(files)
        if not 0 <= file_index < len(file_list):
            return None
        unit = file_list[file_index]
        content = self._sources.get(unit)
        if content is None:
            return None
        index = self._lines.setdefault(unit, LineIndex(content))
        begin = index.position(start)
        if begin is None:
            return None
        end = index.position(start + max(length, 0))
        return SourceLocation(
            file=unit,
            line=begin[0],
            column=begin[1],
            end_line=end[0] if end else None,
            end_column=end[1] if end else None,
        )

    def _from_program_counter(self, pc: int) -> tuple[int, int, int] | None:
        for bytecode, source_map in (
            (self._artifact.deployed_bytecode, self._artifact.deployed_source_map),
            (self._artifact.bytecode, self._artifact.source_map),
        ):
            if not bytecode or not source_map:
                continue
            if bytecode not in self._bytecode_maps:
                try:
                    self._bytecode_maps[bytecode] = (
                        instruction_index(bytecode),
                        decompress_source_map(source_map),
                    )
                except ValueError as exc:
                    LOGGER.debug("cannot decode bytecode for source mapping: %s", exc)
                    continue
            offsets, entries = self._bytecode_maps[bytecode]
            position = offsets.get(pc)
            if position is not None and position < len(entries):
                entry = entries[position]
                return entry.start, entry.length, entry.file_index
        return None


class FindingReducer:
    """Turn the service's raw issue reports into an ordered, duplicate-free list."""

    def __init__(self, *, severity_rules: SeverityRuleView | None = None) -> None:
        self._severity_rules = severity_rules

    def reduce(
        self,
        raw_reports: Iterable[Mapping[str, Any]],
        artifact: CompiledArtifact,
        sources: Mapping[str, str],
    ) -> list[Finding]:
        """Return findings in first-occurrence order with duplicates dropped.

        Duplicates share rule id, normalised message and primary location;
        findings whose location cannot be mapped keep ``location=None``.
        """

        resolver = _LocationResolver(artifact, sources)
        seen: set[tuple[str, str, tuple[str, int, int] | None]] = set()
        findings: list[Finding] = []
        for issue in iter_issues(raw_reports):
            finding = self._to_finding(issue, artifact, resolver)
            key = finding.identity()
            if key in seen:
                continue
            seen.add(key)
            findings.append(finding)
        LOGGER.debug("reduced issues to %d unique finding(s)", len(findings))
        return findings

    def _to_finding(self, issue: RawIssue, artifact: CompiledArtifact, resolver: _LocationResolver) -> Finding:
        locations = [loc for loc in (resolver.resolve(raw) for raw in issue.locations) if loc is not None]
        message = " ".join(part.strip() for part in (issue.head, issue.tail) if part.strip()) or issue.swc_title
        rule_id = issue.swc_id or UNKNOWN_RULE
        severity = apply_severity_rules(rule_id, severity_from_service(issue.severity), rules=self._severity_rules)
        return Finding(
            rule_id=rule_id,
            title=issue.swc_title,
            severity=severity,
            message=message,
            location=locations[0] if locations else None,
            function=_function_name(issue, artifact),
            extra_locations=tuple(locations[1:]),
        )


def iter_issues(raw_reports: Iterable[Mapping[str, Any]]) -> Iterator[RawIssue]:
    """Yield issues from report envelopes, inheriting report-level source metadata."""

    for report in raw_reports:
        if not isinstance(report, Mapping):
            continue
        if "issues" not in report:
            entries: Iterable[Any] = [report]
        else:
            entries = report.get("issues") or ()
        defaults = {
            "sourceList": report.get("sourceList"),
            "sourceFormat": report.get("sourceFormat"),
            "sourceType": report.get("sourceType"),
        }
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            try:
                issue = RawIssue.model_validate(entry)
            except ValidationError as exc:
                LOGGER.warning("skipping malformed issue: %s", exc)
                continue
            yield _inherit_locator_defaults(issue, defaults)


def _inherit_locator_defaults(issue: RawIssue, defaults: Mapping[str, Any]) -> RawIssue:
    located: list[RawLocator] = []
    for locator in issue.locations:
        located.append(
            locator.model_copy(
                update={
                    "source_list": locator.source_list or defaults.get("sourceList"),
                    "source_format": locator.source_format or defaults.get("sourceFormat"),
                    "source_type": locator.source_type or defaults.get("sourceType"),
                },
            ),
        )
    return issue.model_copy(update={"locations": located})


def _split_locator(value: str) -> tuple[int, int, int]:
    parts = value.split(":")
    start = int(parts[0])
    length = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    file_index = int(parts[2]) if len(parts) > 2 and parts[2] else 0
    return start, length, file_index


def _function_name(issue: RawIssue, artifact: CompiledArtifact) -> str | None:
    """Return the called function's signature from the issue's transaction input."""

    test_cases = issue.extra.get("testCases")
    if not isinstance(test_cases, list):
        return None
    for case in test_cases:
        steps = case.get("steps") if isinstance(case, Mapping) else None
        if not isinstance(steps, list):
            continue
        for step in reversed(steps):
            data = step.get("input") if isinstance(step, Mapping) else None
            if not isinstance(data, str):
                continue
            selector = data.removeprefix("0x")[:_SELECTOR_HEX_LENGTH]
            if len(selector) == _SELECTOR_HEX_LENGTH:
                signature = artifact.function_for_selector(selector)
                if signature is not None:
                    return signature
    return None


__all__ = ["FindingReducer", "iter_issues"]
