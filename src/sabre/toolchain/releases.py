# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Index of published compiler releases for one platform."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from threading import Lock

from ..errors import ToolchainUnavailable
from ..models import ReleaseBuild, VersionIdentifier
from .constants import ToolchainCacheLayout
from .download import atomic_write, fetch_url

LOGGER = logging.getLogger(__name__)

Downloader = Callable[[str], bytes]


class ReleaseIndex:
    """Lazily loaded view over the platform's ``list.json`` release manifest.

    A local copy is reused while younger than ``max_age_hours``; when the
    network is unavailable a stale copy is preferred over failing.
    """

    def __init__(
        self,
        layout: ToolchainCacheLayout,
        *,
        base_url: str,
        max_age_hours: float = 24.0,
        downloader: Downloader | None = None,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._layout = layout
        self._base_url = base_url.rstrip("/")
        self._max_age = max_age_hours * 3600
        self._downloader = downloader or fetch_url
        self._now = now
        self._lock = Lock()
        self._builds: dict[VersionIdentifier, ReleaseBuild] | None = None

    @property
    def list_url(self) -> str:
        return f"{self._base_url}/{self._layout.platform}/list.json"

    def download_url(self, build: ReleaseBuild) -> str:
        """Return the URL of the binary described by ``build``."""

        return f"{self._base_url}/{self._layout.platform}/{build.path}"

    def versions(self) -> list[VersionIdentifier]:
        """Return every released version listed in the manifest."""

        return list(self._load())

    def build_for(self, version: VersionIdentifier) -> ReleaseBuild:
        """Return build metadata for ``version``.

        Raises:
            ToolchainUnavailable: ``version`` is not a published release.
        """

        builds = self._load()
        if version not in builds:
            raise ToolchainUnavailable(version, "not a published release for this platform")
        return builds[version]

    def _load(self) -> dict[VersionIdentifier, ReleaseBuild]:
        with self._lock:
            if self._builds is None:
                self._builds = parse_manifest(self._read_manifest())
            return self._builds

    def _read_manifest(self) -> Mapping[str, object]:
        cached = self._layout.index_file
        if self._is_fresh(cached):
            try:
                return _decode(cached.read_bytes())
            except (OSError, ValueError) as exc:
                LOGGER.warning("ignoring unreadable release index %s: %s", cached, exc)

        try:
            payload = self._downloader(self.list_url)
            manifest = _decode(payload)
        except (OSError, ValueError) as exc:
            if cached.is_file():
                LOGGER.warning("release index download failed (%s); using stale copy", exc)
                try:
                    return _decode(cached.read_bytes())
                except (OSError, ValueError) as stale_exc:
                    LOGGER.warning("stale release index %s is unreadable: %s", cached, stale_exc)
            raise ToolchainUnavailable(None, f"cannot fetch {self.list_url}: {exc}") from exc

        try:
            atomic_write(cached, payload)
        except OSError as exc:
            LOGGER.warning("unable to cache release index at %s: %s", cached, exc)
        return manifest

    def _is_fresh(self, path: Path) -> bool:
        try:
            age = self._now() - path.stat().st_mtime
        except OSError:
            return False
        return age < self._max_age


def parse_manifest(manifest: Mapping[str, object]) -> dict[VersionIdentifier, ReleaseBuild]:
    """Return release builds keyed by version from a decoded ``list.json``."""

    releases = manifest.get("releases")
    builds = manifest.get("builds")
    if not isinstance(releases, Mapping):
        raise ToolchainUnavailable(None, "release index has no 'releases' table")
    by_path: dict[str, Mapping[str, object]] = {}
    if isinstance(builds, list):
        for entry in builds:
            if isinstance(entry, Mapping) and isinstance(entry.get("path"), str):
                by_path[str(entry["path"])] = entry

    result: dict[VersionIdentifier, ReleaseBuild] = {}
    for version, path in releases.items():
        if not isinstance(path, str):
            continue
        entry = by_path.get(path, {})
        digest = entry.get("sha256")
        result[str(version)] = ReleaseBuild(
            version=str(version),
            path=path,
            long_version=str(entry.get("longVersion") or version),
            sha256=str(digest).lower().removeprefix("0x") if digest else None,
        )
    return result


def _decode(payload: bytes) -> Mapping[str, object]:
    data = json.loads(payload.decode("utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError("release index must be a JSON object")
    return data


__all__ = ["Downloader", "ReleaseIndex", "parse_manifest"]
