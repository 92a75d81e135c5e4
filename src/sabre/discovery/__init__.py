# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Source discovery: file-system boundary, import parsing and resolution."""

from __future__ import annotations

from .filesystem import LocalFileSystem, SourceFileSystem
from .imports import ImportParser, RegexImportParser
from .resolver import DependencyResolver

__all__ = [
    "DependencyResolver",
    "ImportParser",
    "LocalFileSystem",
    "RegexImportParser",
    "SourceFileSystem",
]
