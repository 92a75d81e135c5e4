# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Solidity security analysis client.

Detects the compiler version a contract requires, compiles it with a cached
``solc`` snapshot, submits the artifact to the MythX analysis service and
renders the deduplicated findings.
"""

from __future__ import annotations

from .errors import SabreError
from .pipeline import AnalysisPipeline, AnalysisRequest, OutcomeKind, RunOutcome, build_pipeline

__version__ = "0.1.0"

__all__ = [
    "AnalysisPipeline",
    "AnalysisRequest",
    "OutcomeKind",
    "RunOutcome",
    "SabreError",
    "__version__",
    "build_pipeline",
]
