# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Finding reduction and report rendering."""

from __future__ import annotations

from .formatters import OutputFormat, parse_format, parse_json_report, render
from .reducer import FindingReducer, iter_issues

__all__ = [
    "FindingReducer",
    "OutputFormat",
    "iter_issues",
    "parse_format",
    "parse_json_report",
    "render",
]
