# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Cache layout helpers shared by the release index and snapshot store."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Final

SOLC_SUBDIR: Final[str] = "solc"
SNAPSHOTS_SUBDIR: Final[str] = "snapshots"
INDEX_SUBDIR: Final[str] = "index"
BINARY_NAME: Final[str] = "solc"
META_FILENAME: Final[str] = "snapshot.json"
LIST_FILENAME: Final[str] = "list.json"


@dataclass(frozen=True, slots=True)
class ToolchainCacheLayout:
    """Filesystem layout of the compiler cache rooted at ``cache_dir``."""

    cache_dir: Path
    platform: str

    @property
    def solc_root(self) -> Path:
        return self.cache_dir / SOLC_SUBDIR / self.platform

    @property
    def snapshots_dir(self) -> Path:
        return self.solc_root / SNAPSHOTS_SUBDIR

    @property
    def index_file(self) -> Path:
        return self.solc_root / INDEX_SUBDIR / LIST_FILENAME

    def snapshot_dir(self, version: str) -> Path:
        """Return the directory holding the snapshot for ``version``."""

        return self.snapshots_dir / f"v{version}"

    def binary_path(self, version: str) -> Path:
        return self.snapshot_dir(version) / BINARY_NAME

    def meta_path(self, version: str) -> Path:
        return self.snapshot_dir(version) / META_FILENAME


__all__ = [
    "BINARY_NAME",
    "META_FILENAME",
    "ToolchainCacheLayout",
]
