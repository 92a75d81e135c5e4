# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Standard-JSON invocation of a cached ``solc`` binary."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Mapping
from typing import Any, Final, Protocol

from ..errors import CompilationFailed
from ..models import CompilerDiagnostic, ToolchainSnapshot
from ..subprocess_utils import run_command

LOGGER = logging.getLogger(__name__)

CONTRACT_OUTPUTS: Final[tuple[str, ...]] = (
    "abi",
    "evm.bytecode.object",
    "evm.bytecode.sourceMap",
    "evm.deployedBytecode.object",
    "evm.deployedBytecode.sourceMap",
    "evm.methodIdentifiers",
)

StandardJson = dict[str, Any]


def build_standard_input(sources: Mapping[str, str], *, optimize: bool = False) -> StandardJson:
    """Return the compiler's standard-JSON input for ``sources``."""

    return {
        "language": "Solidity",
        "sources": {unit: {"content": content} for unit, content in sources.items()},
        "settings": {
            "optimizer": {"enabled": optimize, "runs": 200},
            "outputSelection": {
                "*": {
                    "*": list(CONTRACT_OUTPUTS),
                    "": ["ast"],
                },
            },
        },
    }


class SolcRunner(Protocol):
    """Executes a compiler snapshot over a standard-JSON document."""

    def run(self, snapshot: ToolchainSnapshot, payload: StandardJson) -> StandardJson:
        """Return the decoded standard-JSON output."""
        ...


class SubprocessSolcRunner:
    """Run ``solc --standard-json`` reading the input document from stdin."""

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout

    def run(self, snapshot: ToolchainSnapshot, payload: StandardJson) -> StandardJson:
        command = [str(snapshot.executable), "--standard-json"]
        try:
            completed = run_command(
                command,
                check=False,
                input_text=json.dumps(payload),
                timeout=self._timeout,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as exc:
            raise CompilationFailed((), f"Unable to run solc v{snapshot.version}: {exc}") from exc

        try:
            output = json.loads(completed.stdout)
        except ValueError as exc:
            detail = completed.stderr.strip() or completed.stdout.strip() or f"exit code {completed.returncode}"
            raise CompilationFailed((), f"solc v{snapshot.version} produced no JSON output: {detail}") from exc
        if not isinstance(output, dict):
            raise CompilationFailed((), f"solc v{snapshot.version} produced unexpected output")
        if completed.stderr.strip():
            LOGGER.debug("solc stderr: %s", completed.stderr.strip())
        return output


def parse_diagnostics(output: Mapping[str, Any]) -> tuple[CompilerDiagnostic, ...]:
    """Return compiler errors and warnings from a standard-JSON output document."""

    diagnostics: list[CompilerDiagnostic] = []
    for raw in output.get("errors") or ():
        if not isinstance(raw, Mapping):
            continue
        location = raw.get("sourceLocation") or {}
        diagnostics.append(
            CompilerDiagnostic(
                severity=str(raw.get("severity") or "error"),
                type=str(raw.get("type") or "Error"),
                message=str(raw.get("message") or ""),
                formatted=raw.get("formattedMessage"),
                file=location.get("file"),
                start=location.get("start"),
                end=location.get("end"),
            ),
        )
    return tuple(diagnostics)


def ordered_source_list(output: Mapping[str, Any], fallback: list[str]) -> tuple[str, ...]:
    """Return source unit names ordered by the compiler-assigned source ids."""

    sources = output.get("sources")
    if not isinstance(sources, Mapping) or not sources:
        return tuple(fallback)
    ranked = sorted(
        ((int(meta.get("id", 0)), unit) for unit, meta in sources.items() if isinstance(meta, Mapping)),
    )
    return tuple(unit for _, unit in ranked)


__all__ = [
    "SolcRunner",
    "StandardJson",
    "SubprocessSolcRunner",
    "build_standard_input",
    "ordered_source_list",
    "parse_diagnostics",
]
