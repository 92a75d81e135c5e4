# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Remote analysis service client and job state machine."""

from __future__ import annotations

from .modes import MODE_SCHEDULES, AnalysisMode, PollSchedule, parse_mode, schedule_for
from .service import AnalysisService, MythXService
from .session import AnalysisSession
from .timing import CancellationToken, Clock, SystemClock

__all__ = [
    "MODE_SCHEDULES",
    "AnalysisMode",
    "AnalysisService",
    "AnalysisSession",
    "CancellationToken",
    "Clock",
    "MythXService",
    "PollSchedule",
    "SystemClock",
    "parse_mode",
    "schedule_for",
]
