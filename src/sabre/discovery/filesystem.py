# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""File-system boundary used while resolving imports."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class SourceFileSystem(Protocol):
    """Minimal read-only view of the file system."""

    def exists(self, path: str) -> bool:
        """Return ``True`` when ``path`` names a regular file."""
        ...

    def read(self, path: str) -> str:
        """Return the text content of ``path``.

        Raises:
            OSError: The file cannot be read.
            UnicodeDecodeError: The file is not valid UTF-8.
        """
        ...


class LocalFileSystem:
    """Read sources from the local disk as UTF-8 text."""

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def read(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8")


__all__ = ["LocalFileSystem", "SourceFileSystem"]
