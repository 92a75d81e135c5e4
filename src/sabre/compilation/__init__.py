# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compiler invocation and source map helpers."""

from __future__ import annotations

from .solc import SolcRunner, SubprocessSolcRunner, build_standard_input
from .unit import CompilationUnit, select_contract

__all__ = [
    "CompilationUnit",
    "SolcRunner",
    "SubprocessSolcRunner",
    "build_standard_input",
    "select_contract",
]
