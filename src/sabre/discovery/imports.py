# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Extract import paths from Solidity source text."""

from __future__ import annotations

import re
from typing import Final, Protocol

from ..models import ToolchainSnapshot
from ..toolchain.versioning import strip_comments

# import "p"; import "p" as X; import * as X from "p"; import {A, B as C} from "p";
IMPORT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\bimport\s+(?:(?:\*\s+as\s+\w+|\{[^}]*\}|\w+)\s+from\s+)?([\"'])(?P<path>[^\"']+)\1[^;]*;",
)


class ImportParser(Protocol):
    """Language-specific import declaration parser."""

    def parse(self, content: str, *, snapshot: ToolchainSnapshot | None = None) -> list[str]:
        """Return imported paths in declaration order."""
        ...


class RegexImportParser:
    """Parse import directives with a regular expression, ignoring comments."""

    def parse(self, content: str, *, snapshot: ToolchainSnapshot | None = None) -> list[str]:
        del snapshot
        paths: list[str] = []
        for match in IMPORT_PATTERN.finditer(strip_comments(content)):
            path = match.group("path")
            if path not in paths:
                paths.append(path)
        return paths


__all__ = ["IMPORT_PATTERN", "ImportParser", "RegexImportParser"]
