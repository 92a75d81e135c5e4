# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Compile a resolved source set and select the contract under analysis."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from collections.abc import Mapping
from typing import Any

from ..errors import AmbiguousTarget, CompilationFailed, TargetNotFound
from ..models import CompiledArtifact, SourceSet, ToolchainSnapshot
from .solc import SolcRunner, SubprocessSolcRunner, build_standard_input, ordered_source_list, parse_diagnostics

LOGGER = logging.getLogger(__name__)


class CompilationUnit:
    """Run the compiler over a frozen :class:`SourceSet`."""

    def __init__(self, runner: SolcRunner | None = None, *, optimize: bool = False) -> None:
        self._runner = runner or SubprocessSolcRunner()
        self._optimize = optimize

    async def compile(
        self,
        sources: SourceSet,
        snapshot: ToolchainSnapshot,
        entry_path: str,
        target: str | None = None,
    ) -> CompiledArtifact:
        """Compile ``sources`` and return the artifact for the selected contract.

        Raises:
            CompilationFailed: The compiler reported errors.
            AmbiguousTarget: Several deployable contracts and no ``target``.
            TargetNotFound: ``target`` (or any contract) is missing from the entry file.
        """

        entry = posixpath.normpath(entry_path)
        payload = build_standard_input(sources, optimize=self._optimize)
        output = await asyncio.to_thread(self._runner.run, snapshot, payload)

        diagnostics = parse_diagnostics(output)
        errors = [diag for diag in diagnostics if diag.is_error]
        if errors:
            raise CompilationFailed(errors)
        for warning in diagnostics:
            LOGGER.debug("solc warning: %s", warning.formatted or warning.message)

        declared = output.get("contracts", {}).get(entry) or {}
        name = select_contract(declared, entry, target)
        evm = declared[name].get("evm", {})
        return CompiledArtifact(
            contract_name=name,
            entry=entry,
            solc_version=snapshot.version,
            bytecode=_object(evm.get("bytecode")),
            deployed_bytecode=_object(evm.get("deployedBytecode")),
            source_map=_source_map(evm.get("bytecode")),
            deployed_source_map=_source_map(evm.get("deployedBytecode")),
            function_hashes=dict(evm.get("methodIdentifiers") or {}),
            abi=list(declared[name].get("abi") or []),
            source_list=ordered_source_list(output, list(sources)),
            diagnostics=diagnostics,
        )


def select_contract(declared: Mapping[str, Any], entry: str, target: str | None) -> str:
    """Pick the contract to analyze among those declared in the entry unit.

    Interfaces and abstract contracts (no bytecode) are only considered when
    the entry file declares nothing deployable.
    """

    if target is not None:
        if target not in declared:
            raise TargetNotFound(target, entry)
        return target
    if not declared:
        raise TargetNotFound(None, entry)
    deployable = [name for name, contract in declared.items() if _object(contract.get("evm", {}).get("bytecode"))]
    candidates = deployable or list(declared)
    if len(candidates) > 1:
        raise AmbiguousTarget(candidates)
    return candidates[0]


def _object(section: Mapping[str, Any] | None) -> str:
    if not section:
        return ""
    return str(section.get("object") or "")


def _source_map(section: Mapping[str, Any] | None) -> str:
    if not section:
        return ""
    return str(section.get("sourceMap") or "")


__all__ = ["CompilationUnit", "select_contract"]
