# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for compiler snapshot acquisition and storage."""

from __future__ import annotations

import asyncio
import hashlib
import json
from pathlib import Path

import pytest
from helpers.doubles import CountingFetcher, MemorySnapshotStore

from sabre.errors import ToolchainUnavailable
from sabre.models import ReleaseBuild
from sabre.toolchain import FileSnapshotStore, ToolchainCache, ToolchainCacheLayout


def test_concurrent_acquire_downloads_once(store: MemorySnapshotStore) -> None:
    fetcher = CountingFetcher(delay=0.05)
    cache = ToolchainCache(store, fetcher)

    async def scenario() -> list[tuple[object, bool]]:
        return await asyncio.gather(*(cache.acquire("0.5.17") for _ in range(5)))

    results = asyncio.run(scenario())

    assert fetcher.calls["0.5.17"] == 1
    snapshots = {result[0] for result in results}
    assert len(snapshots) == 1
    assert store.saves == 1


def test_acquire_reports_cache_hit(store: MemorySnapshotStore, fetcher: CountingFetcher) -> None:
    cache = ToolchainCache(store, fetcher)

    first, first_cached = asyncio.run(cache.acquire("0.6.12"))
    second, second_cached = asyncio.run(cache.acquire("0.6.12"))

    assert (first_cached, second_cached) == (False, True)
    assert first == second
    assert fetcher.total_calls == 1


def test_distinct_versions_download_independently(store: MemorySnapshotStore, fetcher: CountingFetcher) -> None:
    cache = ToolchainCache(store, fetcher)

    async def scenario() -> None:
        await asyncio.gather(cache.acquire("0.5.17"), cache.acquire("0.6.12"))

    asyncio.run(scenario())

    assert fetcher.calls == {"0.5.17": 1, "0.6.12": 1}
    assert cache.cached_versions() == ["0.5.17", "0.6.12"]


def test_checksum_mismatch_is_not_stored(store: MemorySnapshotStore) -> None:
    cache = ToolchainCache(store, CountingFetcher(sha256="f" * 64))

    with pytest.raises(ToolchainUnavailable, match="checksum mismatch"):
        asyncio.run(cache.acquire("0.5.17"))

    assert store.entries == {}


def test_download_failure_becomes_toolchain_error(store: MemorySnapshotStore) -> None:
    cache = ToolchainCache(store, CountingFetcher(error=OSError("connection reset")))

    with pytest.raises(ToolchainUnavailable) as excinfo:
        asyncio.run(cache.acquire("0.5.17"))

    assert excinfo.value.version == "0.5.17"
    assert excinfo.value.kind == "ToolchainError"


def test_failed_download_can_be_retried(store: MemorySnapshotStore) -> None:
    fetcher = CountingFetcher(error=OSError("offline"))
    cache = ToolchainCache(store, fetcher)
    with pytest.raises(ToolchainUnavailable):
        asyncio.run(cache.acquire("0.5.17"))

    fetcher.error = None
    snapshot, cached = asyncio.run(cache.acquire("0.5.17"))

    assert snapshot.version == "0.5.17"
    assert cached is False
    assert fetcher.calls["0.5.17"] == 2


def test_invalidate_forces_new_download(store: MemorySnapshotStore, fetcher: CountingFetcher) -> None:
    cache = ToolchainCache(store, fetcher)
    asyncio.run(cache.acquire("0.5.17"))

    assert cache.invalidate("0.5.17") is True
    assert cache.invalidate("0.5.17") is False
    asyncio.run(cache.acquire("0.5.17"))

    assert fetcher.calls["0.5.17"] == 2


def _build(version: str, payload: bytes) -> ReleaseBuild:
    return ReleaseBuild(
        version=version,
        path=f"solc-linux-amd64-v{version}",
        long_version=f"{version}+commit.deadbeef",
        sha256=hashlib.sha256(payload).hexdigest(),
    )


def test_file_store_round_trip(tmp_path: Path) -> None:
    layout = ToolchainCacheLayout(cache_dir=tmp_path, platform="linux-amd64")
    store = FileSnapshotStore(layout)

    saved = store.save(_build("0.5.17", b"binary"), b"binary")
    loaded = store.load("0.5.17")

    assert loaded == saved
    assert loaded is not None
    assert loaded.executable == layout.binary_path("0.5.17")
    assert loaded.executable.read_bytes() == b"binary"
    assert store.versions() == ["0.5.17"]


def test_file_store_ignores_entry_without_metadata(tmp_path: Path) -> None:
    layout = ToolchainCacheLayout(cache_dir=tmp_path, platform="linux-amd64")
    binary = layout.binary_path("0.5.17")
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"partial")
    store = FileSnapshotStore(layout)

    assert store.load("0.5.17") is None
    assert store.versions() == []


def test_file_store_rejects_corrupted_binary(tmp_path: Path) -> None:
    layout = ToolchainCacheLayout(cache_dir=tmp_path, platform="linux-amd64")
    store = FileSnapshotStore(layout)
    store.save(_build("0.5.17", b"binary"), b"binary")

    layout.binary_path("0.5.17").write_bytes(b"tampered")

    assert store.load("0.5.17") is None


def test_file_store_metadata_records_digest(tmp_path: Path) -> None:
    layout = ToolchainCacheLayout(cache_dir=tmp_path, platform="linux-amd64")
    FileSnapshotStore(layout).save(_build("0.6.12", b"solc"), b"solc")

    meta = json.loads(layout.meta_path("0.6.12").read_text(encoding="utf-8"))

    assert meta["sha256"] == hashlib.sha256(b"solc").hexdigest()
    assert meta["long_version"] == "0.6.12+commit.deadbeef"
    assert not list(layout.snapshot_dir("0.6.12").glob("*.tmp"))


def test_cache_over_file_store_survives_restart(tmp_path: Path, fetcher: CountingFetcher) -> None:
    layout = ToolchainCacheLayout(cache_dir=tmp_path, platform="linux-amd64")
    asyncio.run(ToolchainCache(FileSnapshotStore(layout), fetcher).acquire("0.5.17"))

    snapshot, cached = asyncio.run(ToolchainCache(FileSnapshotStore(layout), fetcher).acquire("0.5.17"))

    assert cached is True
    assert snapshot.long_version == "0.5.17+commit.deadbeef"
    assert fetcher.total_calls == 1
