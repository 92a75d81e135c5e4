# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Collect an entry file and every source it transitively imports."""

from __future__ import annotations

import logging
import posixpath
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..errors import SourceReadError, UnresolvedImport
from ..models import SourceSet, ToolchainSnapshot
from .filesystem import LocalFileSystem, SourceFileSystem
from .imports import ImportParser, RegexImportParser

LOGGER = logging.getLogger(__name__)

NODE_MODULES = "node_modules"


@dataclass(slots=True)
class _Walk:
    """Mutable state of a single resolution run."""

    sources: SourceSet = field(default_factory=SourceSet)
    files: dict[str, str] = field(default_factory=dict)
    contents: dict[str, str] = field(default_factory=dict)
    queue: deque[str] = field(default_factory=deque)


class DependencyResolver:
    """Breadth-first import resolver producing a frozen :class:`SourceSet`.

    Source unit names follow the compiler's conventions: relative imports
    (``./`` and ``../``) are joined onto the importing unit's name, while
    other imports keep the import string as their unit name and are looked up
    below the entry directory, the configured include paths and every
    ``node_modules`` directory above the entry file.
    """

    def __init__(
        self,
        filesystem: SourceFileSystem | None = None,
        parser: ImportParser | None = None,
        *,
        include_paths: Sequence[str] = (),
        search_node_modules: bool = True,
    ) -> None:
        self._fs = filesystem or LocalFileSystem()
        self._parser = parser or RegexImportParser()
        self._include_paths = tuple(include_paths)
        self._search_node_modules = search_node_modules

    def resolve(
        self,
        entry_path: str,
        snapshot: ToolchainSnapshot | None = None,
        *,
        entry_content: str | None = None,
    ) -> SourceSet:
        """Return the entry file and its transitive imports in discovery order.

        ``entry_content`` is used instead of reading the entry file again when
        the caller already holds its text.

        Raises:
            UnresolvedImport: An import does not resolve to an existing file.
            SourceReadError: A resolved file cannot be read.
        """

        entry = posixpath.normpath(entry_path)
        walk = _Walk()
        if entry_content is not None:
            walk.contents[entry] = entry_content
        elif not self._fs.exists(entry):
            raise SourceReadError(entry, "file not found")
        self._admit(walk, entry, entry)
        roots = self._search_roots(entry)

        while walk.queue:
            unit = walk.queue.popleft()
            imports = self._parser.parse(walk.sources[unit], snapshot=snapshot)
            for imported in imports:
                child_unit, child_file = self._locate(imported, unit, walk.files[unit], roots)
                if child_unit in walk.sources:
                    continue
                self._admit(walk, child_unit, child_file)

        LOGGER.debug("resolved %d source unit(s) for %s", len(walk.sources), entry)
        return walk.sources.freeze()

    def _admit(self, walk: _Walk, unit: str, path: str) -> None:
        content = walk.contents.get(path)
        if content is None:
            try:
                content = self._fs.read(path)
            except (OSError, UnicodeDecodeError) as exc:
                raise SourceReadError(path, str(exc)) from exc
            walk.contents[path] = content
        walk.sources.add(unit, content)
        walk.files[unit] = path
        walk.queue.append(unit)

    def _locate(self, imported: str, importer_unit: str, importer_file: str, roots: Sequence[str]) -> tuple[str, str]:
        if imported.startswith(("./", "../")):
            unit = posixpath.normpath(posixpath.join(posixpath.dirname(importer_unit), imported))
            path = posixpath.normpath(posixpath.join(posixpath.dirname(importer_file), imported))
            if self._fs.exists(path):
                return unit, path
            raise UnresolvedImport(imported, importer_unit)

        if posixpath.isabs(imported):
            if self._fs.exists(imported):
                return imported, imported
            raise UnresolvedImport(imported, importer_unit)

        for root in roots:
            candidate = posixpath.normpath(posixpath.join(root, imported))
            if self._fs.exists(candidate):
                return imported, candidate
        raise UnresolvedImport(imported, importer_unit)

    def _search_roots(self, entry: str) -> list[str]:
        entry_dir = posixpath.dirname(entry) or "."
        roots = [entry_dir, *self._include_paths]
        if self._search_node_modules:
            current = entry_dir
            while True:
                roots.append(posixpath.join(current, NODE_MODULES))
                parent = posixpath.dirname(current)
                if not parent or parent == current:
                    break
                current = parent
        return roots


__all__ = ["DependencyResolver"]
