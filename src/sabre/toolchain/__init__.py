# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compiler version detection, release index and snapshot cache."""

from __future__ import annotations

from .cache import FileSnapshotStore, HttpSnapshotFetcher, SnapshotFetcher, SnapshotStore, ToolchainCache
from .constants import ToolchainCacheLayout
from .releases import ReleaseIndex
from .versioning import VersionConstraint, VersionDetector, extract_constraints, parse_constraint

__all__ = [
    "FileSnapshotStore",
    "HttpSnapshotFetcher",
    "ReleaseIndex",
    "SnapshotFetcher",
    "SnapshotStore",
    "ToolchainCache",
    "ToolchainCacheLayout",
    "VersionConstraint",
    "VersionDetector",
    "extract_constraints",
    "parse_constraint",
]
