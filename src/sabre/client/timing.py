# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Clock and cancellation primitives used by the polling loop."""

from __future__ import annotations

import asyncio
import time
from typing import Protocol


class CancellationToken:
    """One-shot, awaitable cancellation flag."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class Clock(Protocol):
    """Monotonic time source with a cooperative, cancellable sleep."""

    def monotonic(self) -> float:
        """Return seconds from an arbitrary, non-decreasing origin."""
        ...

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        """Suspend for ``seconds`` or until ``token`` is cancelled."""
        ...


class SystemClock:
    """Wall-clock implementation backed by :func:`time.monotonic` and asyncio."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        if seconds <= 0:
            return
        if token is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(token.wait(), timeout=seconds)
        except TimeoutError:
            return


__all__ = ["CancellationToken", "Clock", "SystemClock"]
