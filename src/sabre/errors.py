# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy raised by the analysis pipeline stages."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .models import CompilerDiagnostic


class SabreError(Exception):
    """Base class for every fatal error reported by a pipeline stage."""

    kind: ClassVar[str] = "SabreError"


class ConfigError(SabreError):
    """Raised when configuration input is invalid."""

    kind = "ConfigError"


class FormatError(SabreError):
    """Raised when an unknown output format is requested."""

    kind = "FormatError"


class ModeError(ConfigError):
    """Raised when an unknown analysis mode is requested."""

    kind = "ModeError"


class VersionError(SabreError):
    """Raised when the compiler version cannot be derived from a source file."""

    kind = "VersionError"


class NoVersionConstraint(VersionError):
    """Raised when a source file carries no ``pragma solidity`` directive."""

    def __init__(self) -> None:
        super().__init__("No `pragma solidity` version directive found in source")


class MalformedVersionConstraint(VersionError):
    """Raised when a version directive cannot be parsed."""

    def __init__(self, constraint: str, reason: str | None = None) -> None:
        self.constraint = constraint
        detail = f": {reason}" if reason else ""
        super().__init__(f"Malformed version constraint '{constraint}'{detail}")


class UnsatisfiableVersionConstraint(VersionError):
    """Raised when no known compiler release satisfies the directives."""

    def __init__(self, constraints: Sequence[str]) -> None:
        self.constraints = tuple(constraints)
        joined = "; ".join(self.constraints)
        super().__init__(f"No known solc release satisfies '{joined}'")


class ToolchainError(SabreError):
    """Raised when the compiler cannot be fetched, stored or loaded."""

    kind = "ToolchainError"


class ToolchainUnavailable(ToolchainError):
    """Raised when a compiler snapshot cannot be acquired."""

    def __init__(self, version: str | None, reason: str) -> None:
        self.version = version
        self.reason = reason
        subject = f"solc v{version}" if version else "solc release index"
        super().__init__(f"Unable to acquire {subject}: {reason}")


class ResolutionError(SabreError):
    """Raised when the import graph of the entry file cannot be built."""

    kind = "ResolutionError"

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(message)


class UnresolvedImport(ResolutionError):
    """Raised when an import path does not resolve to a readable file."""

    def __init__(self, path: str, importer: str | None = None) -> None:
        self.importer = importer
        origin = f" (imported from {importer})" if importer else ""
        super().__init__(path, f"Unable to resolve import '{path}'{origin}")


class SourceReadError(ResolutionError):
    """Raised when a resolved source file cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        self.reason = reason
        super().__init__(path, f"Unable to read source file '{path}': {reason}")


class CompilationError(SabreError):
    """Raised when compilation fails or no target contract can be selected."""

    kind = "CompilationError"


class CompilationFailed(CompilationError):
    """Raised when the compiler reports errors for the source set."""

    def __init__(self, diagnostics: Sequence[CompilerDiagnostic], message: str | None = None) -> None:
        self.diagnostics = tuple(diagnostics)
        if message is None:
            rendered = "\n".join(diag.formatted or diag.message for diag in self.diagnostics)
            message = f"Compilation failed:\n{rendered}" if rendered else "Compilation failed"
        super().__init__(message)


class AmbiguousTarget(CompilationError):
    """Raised when the entry file declares several contracts and none was named."""

    def __init__(self, candidates: Sequence[str]) -> None:
        self.candidates = tuple(candidates)
        names = ", ".join(self.candidates)
        super().__init__(f"Multiple contracts found ({names}); pass the contract name to analyze")


class TargetNotFound(CompilationError):
    """Raised when the requested contract is not declared in the entry file."""

    def __init__(self, name: str | None, entry: str) -> None:
        self.name = name
        if name is None:
            super().__init__(f"No contracts found in {entry}")
        else:
            super().__init__(f"Contract '{name}' not found in {entry}")


class AuthenticationError(SabreError):
    """Raised when the analysis service rejects the supplied credentials."""

    kind = "AuthenticationError"


class TransportError(SabreError):
    """Raised when a remote call fails below the service contract."""

    kind = "TransportError"

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"Transport failure during {stage}: {reason}")


class AnalysisTimeout(SabreError):
    """Raised when an analysis job does not finish within the mode timeout."""

    kind = "AnalysisTimeout"

    def __init__(self, uuid: str, elapsed: float) -> None:
        self.uuid = uuid
        self.elapsed = elapsed
        super().__init__(f"Analysis job {uuid} did not finish after {elapsed:.0f}s")


class AnalysisFailed(SabreError):
    """Raised when the service reports the analysis job as failed."""

    kind = "AnalysisFailed"

    def __init__(self, uuid: str, reason: str | None = None) -> None:
        self.uuid = uuid
        detail = f": {reason}" if reason else ""
        super().__init__(f"Analysis job {uuid} failed{detail}")


class AnalysisCancelled(SabreError):
    """Raised when waiting for an analysis job is cancelled by the caller."""

    kind = "AnalysisCancelled"

    def __init__(self, uuid: str) -> None:
        self.uuid = uuid
        super().__init__(f"Waiting for analysis job {uuid} was cancelled")


class ResultRetrievalError(SabreError):
    """Raised when results of a completed job cannot be fetched."""

    kind = "ResultRetrievalError"

    def __init__(self, uuid: str, reason: str) -> None:
        self.uuid = uuid
        super().__init__(f"Unable to retrieve results for job {uuid}: {reason}")


__all__ = [
    "AmbiguousTarget",
    "AnalysisCancelled",
    "AnalysisFailed",
    "AnalysisTimeout",
    "AuthenticationError",
    "CompilationError",
    "CompilationFailed",
    "ConfigError",
    "FormatError",
    "MalformedVersionConstraint",
    "ModeError",
    "NoVersionConstraint",
    "ResolutionError",
    "ResultRetrievalError",
    "SabreError",
    "SourceReadError",
    "TargetNotFound",
    "ToolchainError",
    "ToolchainUnavailable",
    "TransportError",
    "UnresolvedImport",
    "UnsatisfiableVersionConstraint",
    "VersionError",
]
