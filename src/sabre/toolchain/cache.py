# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Local, version-keyed cache of compiler snapshots."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import shutil
import stat
from pathlib import Path
from typing import Protocol

from ..errors import ToolchainError, ToolchainUnavailable
from ..models import ReleaseBuild, ToolchainSnapshot, VersionIdentifier
from .constants import ToolchainCacheLayout
from .download import atomic_write, fetch_url
from .releases import Downloader, ReleaseIndex

LOGGER = logging.getLogger(__name__)

_EXECUTABLE_MODE = stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH
_CHUNK_SIZE = 1 << 20


class SnapshotStore(Protocol):
    """Persistent storage for compiler snapshots keyed by version."""

    def load(self, version: VersionIdentifier) -> ToolchainSnapshot | None:
        """Return the stored snapshot for ``version`` or ``None`` on a miss."""
        ...

    def save(self, build: ReleaseBuild, payload: bytes) -> ToolchainSnapshot:
        """Persist ``payload`` for ``build`` and return the stored snapshot."""
        ...

    def versions(self) -> list[VersionIdentifier]:
        """Return every version currently stored."""
        ...

    def invalidate(self, version: VersionIdentifier) -> bool:
        """Remove the entry for ``version``; return ``True`` when one existed."""
        ...


class SnapshotFetcher(Protocol):
    """Source of compiler binaries for a given version."""

    def fetch(self, version: VersionIdentifier) -> tuple[ReleaseBuild, bytes]:
        """Return build metadata and the binary payload for ``version``."""
        ...


class FileSnapshotStore:
    """Store snapshots on disk, one directory per version.

    The binary is written first and the metadata record last, both via
    temporary files renamed into place, so an interrupted download never
    produces an entry that :meth:`load` accepts.
    """

    def __init__(self, layout: ToolchainCacheLayout) -> None:
        self._layout = layout

    def load(self, version: VersionIdentifier) -> ToolchainSnapshot | None:
        meta_path = self._layout.meta_path(version)
        binary = self._layout.binary_path(version)
        if not (meta_path.is_file() and binary.is_file()):
            return None
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
            digest = file_sha256(binary)
        except (OSError, ValueError) as exc:
            LOGGER.warning("ignoring unreadable cache entry for solc v%s: %s", version, exc)
            return None
        if not isinstance(meta, dict) or meta.get("sha256") != digest:
            LOGGER.warning("cache entry for solc v%s failed its integrity check", version)
            return None
        return ToolchainSnapshot(
            version=version,
            long_version=str(meta.get("long_version") or version),
            executable=binary,
            sha256=digest,
        )

    def save(self, build: ReleaseBuild, payload: bytes) -> ToolchainSnapshot:
        digest = hashlib.sha256(payload).hexdigest()
        binary = self._layout.binary_path(build.version)
        atomic_write(binary, payload, mode=_EXECUTABLE_MODE)
        meta = {
            "version": build.version,
            "long_version": build.long_version,
            "path": build.path,
            "sha256": digest,
        }
        atomic_write(self._layout.meta_path(build.version), json.dumps(meta, indent=2).encode("utf-8"))
        return ToolchainSnapshot(
            version=build.version,
            long_version=build.long_version,
            executable=binary,
            sha256=digest,
        )

    def versions(self) -> list[VersionIdentifier]:
        root = self._layout.snapshots_dir
        if not root.is_dir():
            return []
        found: list[VersionIdentifier] = []
        for entry in sorted(root.iterdir()):
            if entry.is_dir() and entry.name.startswith("v"):
                version = entry.name[1:]
                if self._layout.meta_path(version).is_file():
                    found.append(version)
        return found

    def invalidate(self, version: VersionIdentifier) -> bool:
        target = self._layout.snapshot_dir(version)
        if not target.exists():
            return False
        shutil.rmtree(target)
        return True


class HttpSnapshotFetcher:
    """Download compiler binaries listed in a :class:`ReleaseIndex`."""

    def __init__(self, index: ReleaseIndex, *, downloader: Downloader | None = None) -> None:
        self._index = index
        self._downloader = downloader or fetch_url

    def fetch(self, version: VersionIdentifier) -> tuple[ReleaseBuild, bytes]:
        build = self._index.build_for(version)
        url = self._index.download_url(build)
        LOGGER.debug("downloading solc v%s from %s", version, url)
        return build, self._downloader(url)


class ToolchainCache:
    """Acquire compiler snapshots, downloading each version at most once at a time."""

    def __init__(self, store: SnapshotStore, fetcher: SnapshotFetcher) -> None:
        self._store = store
        self._fetcher = fetcher
        self._inflight: dict[VersionIdentifier, asyncio.Task[tuple[ToolchainSnapshot, bool]]] = {}

    async def acquire(self, version: VersionIdentifier) -> tuple[ToolchainSnapshot, bool]:
        """Return the snapshot for ``version`` and whether it came from the cache.

        Raises:
            ToolchainUnavailable: The snapshot could not be downloaded or stored.
        """

        task = self._inflight.get(version)
        if task is None:
            task = asyncio.ensure_future(self._lookup_or_download(version))
            self._inflight[version] = task
            task.add_done_callback(lambda _done, key=version: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    def cached_versions(self) -> list[VersionIdentifier]:
        return self._store.versions()

    def invalidate(self, version: VersionIdentifier) -> bool:
        """Drop the cache entry for ``version`` so the next acquire downloads it."""

        return self._store.invalidate(version)

    def _load(self, version: VersionIdentifier) -> ToolchainSnapshot | None:
        try:
            return self._store.load(version)
        except OSError as exc:
            LOGGER.warning("cache lookup for solc v%s failed: %s", version, exc)
            return None

    async def _lookup_or_download(self, version: VersionIdentifier) -> tuple[ToolchainSnapshot, bool]:
        cached = await asyncio.to_thread(self._load, version)
        if cached is not None:
            return cached, True
        return await self._download(version), False

    async def _download(self, version: VersionIdentifier) -> ToolchainSnapshot:
        try:
            build, payload = await asyncio.to_thread(self._fetcher.fetch, version)
        except ToolchainError:
            raise
        except (OSError, ValueError) as exc:
            raise ToolchainUnavailable(version, f"download failed: {exc}") from exc

        if build.sha256:
            digest = hashlib.sha256(payload).hexdigest()
            if digest != build.sha256:
                raise ToolchainUnavailable(version, f"checksum mismatch (expected {build.sha256}, got {digest})")

        try:
            return await asyncio.to_thread(self._store.save, build, payload)
        except OSError as exc:
            raise ToolchainUnavailable(version, f"cannot write cache entry: {exc}") from exc


def file_sha256(path: Path) -> str:
    """Return the hex sha256 digest of ``path``."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


__all__ = [
    "FileSnapshotStore",
    "HttpSnapshotFetcher",
    "SnapshotFetcher",
    "SnapshotStore",
    "ToolchainCache",
    "file_sha256",
]
