# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Spinner feedback for analysis runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final

from rich.console import Console
from rich.status import Status

from ..pipeline import Stage

_STAGE_LABELS: Final[dict[Stage, str]] = {
    Stage.READ_INPUT: "Reading input",
    Stage.DETECT_VERSION: "Detecting compiler version",
    Stage.LOAD_COMPILER: "Loading compiler",
    Stage.RESOLVE_IMPORTS: "Resolving imports",
    Stage.COMPILE: "Compiling",
    Stage.AUTHENTICATE: "Authenticating",
    Stage.SUBMIT: "Submitting analysis",
    Stage.ANALYSE: "Analysing contract",
    Stage.RETRIEVE: "Retrieving results",
    Stage.REPORT: "Preparing report",
}


@dataclass(slots=True)
class SpinnerHooks:
    """Pipeline hooks driving a transient rich status spinner on stderr."""

    console: Console
    enabled: bool = True
    _status: Status | None = field(init=False, default=None)

    def on_stage_start(self, stage: Stage) -> None:
        if not self.enabled:
            return
        label = f"{_STAGE_LABELS.get(stage, stage.value)}..."
        if self._status is None:
            self._status = self.console.status(label, spinner="dots")
            self._status.start()
        else:
            self._status.update(label)

    def on_stage_done(self, stage: Stage) -> None:
        if stage is Stage.REPORT:
            self.stop()

    def stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None


__all__ = ["SpinnerHooks"]
