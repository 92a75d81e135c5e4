# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Severity related types and helpers."""

from __future__ import annotations

import re
from enum import Enum
from typing import Final, Iterable, Mapping, MutableMapping, cast


class Severity(str, Enum):
    """Severity levels normalising the analysis service vocabulary."""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    NOTE = "note"


SeverityRule = tuple[re.Pattern[str], Severity]
SeverityRuleMap = MutableMapping[str, list[SeverityRule]]
SeverityRuleView = Mapping[str, Iterable[SeverityRule]]

_SERVICE_SEVERITIES: Final[dict[str, Severity]] = {
    "high": Severity.ERROR,
    "medium": Severity.WARNING,
    "low": Severity.NOTICE,
}

_SEVERITY_LABELS: Final[dict[Severity, str]] = {
    Severity.ERROR: "High",
    Severity.WARNING: "Medium",
    Severity.NOTICE: "Low",
    Severity.NOTE: "Unknown",
}

SEVERITY_ORDER: Final[dict[Severity, int]] = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.NOTICE: 2,
    Severity.NOTE: 3,
}

# Rule overrides keyed by scope; "*" applies to every finding.
DEFAULT_SEVERITY_RULES: Final[dict[str, list[SeverityRule]]] = {}


def severity_from_service(raw: str | None) -> Severity:
    """Map a service severity name (``High``, ``Medium``, ...) onto :class:`Severity`."""

    if not raw:
        return Severity.NOTE
    normalized = raw.strip().lower()
    if normalized in _SERVICE_SEVERITIES:
        return _SERVICE_SEVERITIES[normalized]
    try:
        return Severity(normalized)
    except ValueError:
        return Severity.NOTE


def severity_label(severity: Severity) -> str:
    """Return the service-facing label used in human readable reports."""

    return _SEVERITY_LABELS.get(severity, "Unknown")


def eslint_level(severity: Severity) -> int:
    """Return ``2`` for errors and ``1`` otherwise, mirroring eslint message levels."""

    return 2 if severity is Severity.ERROR else 1


def apply_severity_rules(
    rule_id: str,
    severity: Severity,
    *,
    rules: SeverityRuleView | None = None,
) -> Severity:
    """Apply configured overrides to the severity of a finding."""

    active_rules: SeverityRuleView = rules if rules is not None else DEFAULT_SEVERITY_RULES
    candidates = active_rules.get("*", cast(Iterable[SeverityRule], ()))
    for pattern, sev in candidates:
        if pattern.search(rule_id or ""):
            return Severity(sev)
    return severity


def add_custom_rule(
    spec: str,
    *,
    rules: SeverityRuleMap | None = None,
) -> str | None:
    """Add a custom severity override defined as ``regex=level``.

    Returns an error message for malformed rules and ``None`` on success.
    """

    target: SeverityRuleMap = rules if rules is not None else DEFAULT_SEVERITY_RULES
    try:
        regex, level_str = spec.rsplit("=", 1)
        level = Severity(level_str.strip().lower())
        pattern = re.compile(regex.strip())
    except (ValueError, re.error) as exc:
        return f"invalid rule '{spec}': {exc}"

    target.setdefault("*", []).append((pattern, level))
    return None
