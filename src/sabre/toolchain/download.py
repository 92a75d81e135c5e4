# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""HTTPS download and atomic file write helpers for the compiler cache."""

from __future__ import annotations

import os
import ssl
import tempfile
import urllib.request
from pathlib import Path
from typing import Final
from urllib.parse import urlparse

_SUPPORTED_SCHEMES: Final[frozenset[str]] = frozenset({"https"})
USER_AGENT: Final[str] = "sabre-solc-cache/1.0"


def fetch_url(url: str, *, timeout: float = 60.0) -> bytes:
    """Return the body of ``url`` enforcing safe schemes.

    Raises:
        ValueError: ``url`` does not use HTTPS.
        OSError: The request failed (``urllib.error.URLError`` included).
    """

    parsed = urlparse(url)
    if parsed.scheme.lower() not in _SUPPORTED_SCHEMES:
        raise ValueError(f"Unsupported download scheme '{parsed.scheme}' for {url}")
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    opener = urllib.request.build_opener(urllib.request.HTTPSHandler(context=ssl.create_default_context()))
    with opener.open(request, timeout=timeout) as response:
        return response.read()


def atomic_write(destination: Path, payload: bytes, *, mode: int | None = None) -> None:
    """Write ``payload`` to ``destination`` via a temporary file and rename."""

    destination.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        dir=destination.parent,
        prefix=f".{destination.name}.",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            temp_path.chmod(mode)
        os.replace(temp_path, destination)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


__all__ = ["atomic_write", "fetch_url"]
