# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Analysis modes and their polling schedules."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from enum import Enum
from typing import Final

from ..errors import ModeError


class AnalysisMode(str, Enum):
    """Depth of the remote analysis."""

    QUICK = "quick"
    FULL = "full"


@dataclass(frozen=True, slots=True)
class PollSchedule:
    """Initial delay, timeout and status check cadence, all in seconds."""

    initial_delay: float
    timeout: float
    interval: float = 5.0
    backoff: float = 1.5
    max_interval: float = 30.0

    def intervals(self) -> Iterator[float]:
        """Yield successive waits between status checks."""

        current = self.interval
        while True:
            yield current
            current = min(current * self.backoff, self.max_interval)


MODE_SCHEDULES: Final[dict[AnalysisMode, PollSchedule]] = {
    AnalysisMode.QUICK: PollSchedule(initial_delay=20.0, timeout=180.0),
    AnalysisMode.FULL: PollSchedule(initial_delay=300.0, timeout=2400.0),
}


def parse_mode(name: str) -> AnalysisMode:
    """Return the :class:`AnalysisMode` called ``name``.

    Raises:
        ModeError: ``name`` is not a known mode.
    """

    try:
        return AnalysisMode(name.strip().lower())
    except ValueError:
        available = ", ".join(mode.value for mode in AnalysisMode)
        raise ModeError(f"Invalid analysis mode '{name}'. Available modes: {available}.") from None


def schedule_for(
    mode: AnalysisMode,
    *,
    interval: float | None = None,
    backoff: float | None = None,
    max_interval: float | None = None,
) -> PollSchedule:
    """Return the schedule of ``mode`` with optional cadence overrides."""

    schedule = MODE_SCHEDULES[mode]
    return replace(
        schedule,
        interval=schedule.interval if interval is None else interval,
        backoff=schedule.backoff if backoff is None else backoff,
        max_interval=schedule.max_interval if max_interval is None else max_interval,
    )


__all__ = ["AnalysisMode", "MODE_SCHEDULES", "PollSchedule", "parse_mode", "schedule_for"]
