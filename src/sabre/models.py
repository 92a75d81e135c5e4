# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data models shared across the sabre package."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .severity import Severity

VersionIdentifier: TypeAlias = str

_WHITESPACE = re.compile(r"\s+")


class ReleaseBuild(BaseModel):
    """A single compiler build advertised by the release index."""

    model_config = ConfigDict(frozen=True)

    version: VersionIdentifier
    path: str
    long_version: str
    sha256: str | None = None


class ToolchainSnapshot(BaseModel):
    """An immutable, locally stored compiler binary for one version."""

    model_config = ConfigDict(frozen=True)

    version: VersionIdentifier
    long_version: str
    executable: Path
    sha256: str


class SourceSet(Mapping[str, str]):
    """Source unit name to content mapping kept in discovery order.

    The set can only grow until :meth:`freeze` is called; afterwards it is
    read-only for the rest of the run.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self._frozen = False

    def add(self, unit: str, content: str) -> None:
        """Record ``unit`` with ``content`` unless it is already present."""

        if self._frozen:
            raise TypeError("SourceSet is frozen")
        self._entries.setdefault(unit, content)

    def freeze(self) -> SourceSet:
        """Prevent further additions and return ``self``."""

        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def as_mapping(self) -> Mapping[str, str]:
        """Return a read-only view of the entries."""

        return MappingProxyType(self._entries)

    def __getitem__(self, unit: str) -> str:
        return self._entries[unit]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"SourceSet({list(self._entries)!r}, frozen={self._frozen})"


class CompilerDiagnostic(BaseModel):
    """Error or warning reported by the compiler."""

    model_config = ConfigDict(frozen=True)

    severity: str
    type: str = "Error"
    message: str
    formatted: str | None = None
    file: str | None = None
    start: int | None = None
    end: int | None = None

    @property
    def is_error(self) -> bool:
        return self.severity.lower() == "error"


class CompiledArtifact(BaseModel):
    """Compiled output for the selected contract and its compiler metadata."""

    model_config = ConfigDict(frozen=True)

    contract_name: str
    entry: str
    solc_version: VersionIdentifier
    bytecode: str
    deployed_bytecode: str
    source_map: str = ""
    deployed_source_map: str = ""
    function_hashes: dict[str, str] = Field(default_factory=dict)
    abi: list[dict[str, Any]] = Field(default_factory=list)
    source_list: tuple[str, ...] = ()
    diagnostics: tuple[CompilerDiagnostic, ...] = ()

    @property
    def warnings(self) -> tuple[CompilerDiagnostic, ...]:
        return tuple(diag for diag in self.diagnostics if not diag.is_error)

    def function_for_selector(self, selector: str) -> str | None:
        """Return the function signature whose 4-byte selector is ``selector``."""

        wanted = selector.lower().removeprefix("0x")
        for signature, digest in self.function_hashes.items():
            if digest.lower() == wanted:
                return signature
        return None


class JobState(str, Enum):
    """Lifecycle of an analysis job as seen by this process."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in {JobState.COMPLETED, JobState.FAILED, JobState.TIMED_OUT}


class JobStatus(str, Enum):
    """Status values reported by the remote service."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisJob(BaseModel):
    """A remote analysis job tracked for the lifetime of the run."""

    model_config = ConfigDict(validate_assignment=True)

    uuid: str
    mode: str
    state: JobState = JobState.SUBMITTED
    submitted_at: float = 0.0
    created: datetime | None = None


class RawLocator(BaseModel):
    """A location pointer as reported by the analysis service."""

    model_config = ConfigDict(populate_by_name=True)

    source_map: str | None = Field(default=None, alias="sourceMap")
    source_type: str | None = Field(default=None, alias="sourceType")
    source_format: str | None = Field(default=None, alias="sourceFormat")
    source_list: list[str] | None = Field(default=None, alias="sourceList")


class RawIssue(BaseModel):
    """Issue entry as returned by the analysis service before reduction."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    swc_id: str = Field(default="", alias="swcID")
    swc_title: str = Field(default="", alias="swcTitle")
    severity: str | None = None
    head: str = ""
    tail: str = ""
    locations: list[RawLocator] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _lift_description(cls, value: object) -> object:
        """Flatten the nested ``description`` object into ``head``/``tail``."""
        if not isinstance(value, Mapping):
            return value
        payload = dict(value)
        description = payload.pop("description", None)
        if isinstance(description, Mapping):
            payload.setdefault("head", description.get("head") or "")
            payload.setdefault("tail", description.get("tail") or "")
        return payload

    @field_validator("swc_id", "swc_title", "head", "tail", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        return "" if value is None else str(value)


class SourceLocation(BaseModel):
    """A 1-based line/column range inside one source unit."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None

    def key(self) -> tuple[str, int, int]:
        return (self.file, self.line, self.column)


class Finding(BaseModel):
    """A deduplicated issue mapped onto the submitted source files."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    title: str = ""
    severity: Severity
    message: str
    location: SourceLocation | None = None
    function: str | None = None
    extra_locations: tuple[SourceLocation, ...] = ()

    def identity(self) -> tuple[str, str, tuple[str, int, int] | None]:
        """Return the key used to detect duplicate findings."""

        location = self.location.key() if self.location is not None else None
        return (self.rule_id, normalize_message(self.message), location)


def normalize_message(message: str) -> str:
    """Collapse whitespace and case so cosmetic differences do not split duplicates."""

    return _WHITESPACE.sub(" ", message).strip().casefold()
