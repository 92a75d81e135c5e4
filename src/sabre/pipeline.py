# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""End-to-end analysis run: source file in, rendered report or failure out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .client import AnalysisMode, AnalysisSession, MythXService, PollSchedule, parse_mode, schedule_for
from .client.service import AnalysisService
from .client.timing import CancellationToken, Clock
from .compilation import CompilationUnit, SolcRunner, SubprocessSolcRunner
from .config import Config, Credentials
from .discovery import DependencyResolver, LocalFileSystem, SourceFileSystem
from .errors import ConfigError, SabreError, SourceReadError
from .models import Finding
from .reporting import FindingReducer, OutputFormat, parse_format, render
from .severity import SeverityRuleMap, add_custom_rule
from .toolchain import (
    FileSnapshotStore,
    HttpSnapshotFetcher,
    ReleaseIndex,
    ToolchainCache,
    ToolchainCacheLayout,
    VersionDetector,
)

LOGGER = logging.getLogger(__name__)


class Stage(str, Enum):
    """Ordered steps of one analysis run."""

    READ_INPUT = "read input"
    DETECT_VERSION = "detect version"
    LOAD_COMPILER = "load compiler"
    RESOLVE_IMPORTS = "resolve imports"
    COMPILE = "compile"
    AUTHENTICATE = "authenticate"
    SUBMIT = "submit"
    ANALYSE = "analyse"
    RETRIEVE = "retrieve"
    REPORT = "report"


class OutcomeKind(str, Enum):
    CLEAN = "clean"
    FINDINGS = "findings"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    """Validated user request for one contract analysis."""

    entry_path: str
    contract: str | None = None
    mode: AnalysisMode = AnalysisMode.QUICK
    output_format: OutputFormat = OutputFormat.TEXT

    @classmethod
    def from_options(
        cls,
        entry_path: str,
        contract: str | None = None,
        *,
        mode: str = "quick",
        output_format: str = "text",
    ) -> AnalysisRequest:
        """Build a request from raw option strings.

        Raises:
            ModeError: ``mode`` is not a known analysis mode.
            FormatError: ``output_format`` is not a known report format.
        """

        return cls(
            entry_path=entry_path,
            contract=contract or None,
            mode=parse_mode(mode),
            output_format=parse_format(output_format),
        )


@dataclass(slots=True)
class RunOutcome:
    """Terminal result of :meth:`AnalysisPipeline.run`."""

    kind: OutcomeKind
    entry_path: str
    contract_name: str | None = None
    rendered: str = ""
    findings: list[Finding] = field(default_factory=list)
    stage: Stage | None = None
    error_kind: str | None = None
    message: str = ""
    uuid: str | None = None
    solc_version: str | None = None
    debug_request: dict[str, Any] | None = None
    debug_response: list[dict[str, Any]] | None = None

    @property
    def failed(self) -> bool:
        return self.kind is OutcomeKind.FAILED


class PipelineHooks(Protocol):
    """Progress callbacks invoked around every stage."""

    def on_stage_start(self, stage: Stage) -> None: ...

    def on_stage_done(self, stage: Stage) -> None: ...


class _SilentHooks:
    def on_stage_start(self, stage: Stage) -> None:
        del stage

    def on_stage_done(self, stage: Stage) -> None:
        del stage


@dataclass(slots=True)
class _StageTracker:
    hooks: PipelineHooks
    current: Stage = Stage.READ_INPUT

    @contextmanager
    def enter(self, stage: Stage) -> Iterator[None]:
        self.current = stage
        self.hooks.on_stage_start(stage)
        yield
        self.hooks.on_stage_done(stage)


class AnalysisPipeline:
    """Sequence detection, compilation, remote analysis and reporting.

    Every stage raises a :class:`~sabre.errors.SabreError` subclass on failure;
    :meth:`run` converts the first one into a failed :class:`RunOutcome`
    tagged with the stage that produced it. No partial findings are returned.
    """

    def __init__(
        self,
        *,
        filesystem: SourceFileSystem,
        detector: VersionDetector,
        cache: ToolchainCache,
        resolver: DependencyResolver,
        compiler: CompilationUnit,
        session_factory: Callable[[], AnalysisSession],
        credentials: Credentials,
        reducer: FindingReducer,
        schedule: Callable[[AnalysisMode], PollSchedule] = schedule_for,
        hooks: PipelineHooks | None = None,
    ) -> None:
        self._fs = filesystem
        self._detector = detector
        self._cache = cache
        self._resolver = resolver
        self._compiler = compiler
        self._session_factory = session_factory
        self._credentials = credentials
        self._reducer = reducer
        self._schedule = schedule
        self.hooks: PipelineHooks = hooks or _SilentHooks()

    async def run(self, request: AnalysisRequest) -> RunOutcome:
        """Analyse ``request.entry_path`` and return the terminal outcome."""

        tracker = _StageTracker(self.hooks)
        outcome = RunOutcome(kind=OutcomeKind.FAILED, entry_path=request.entry_path)
        try:
            await self._run_stages(request, tracker, outcome)
        except SabreError as exc:
            LOGGER.debug("run failed at stage '%s': %s", tracker.current.value, exc)
            outcome.kind = OutcomeKind.FAILED
            outcome.stage = tracker.current
            outcome.error_kind = exc.kind
            outcome.message = str(exc)
            outcome.findings = []
            outcome.rendered = ""
        return outcome

    async def _run_stages(self, request: AnalysisRequest, tracker: _StageTracker, outcome: RunOutcome) -> None:
        entry = request.entry_path

        with tracker.enter(Stage.READ_INPUT):
            source = await asyncio.to_thread(self._read_entry, entry)

        with tracker.enter(Stage.DETECT_VERSION):
            version = await asyncio.to_thread(self._detector.detect, source)
            outcome.solc_version = version

        with tracker.enter(Stage.LOAD_COMPILER):
            snapshot, was_cached = await self._cache.acquire(version)
            LOGGER.debug("solc %s %s", version, "loaded from cache" if was_cached else "downloaded")

        with tracker.enter(Stage.RESOLVE_IMPORTS):
            sources = await asyncio.to_thread(self._resolver.resolve, entry, snapshot, entry_content=source)

        with tracker.enter(Stage.COMPILE):
            artifact = await self._compiler.compile(sources, snapshot, entry, request.contract)
            outcome.contract_name = artifact.contract_name

        session = self._session_factory()
        with tracker.enter(Stage.AUTHENTICATE):
            await session.authenticate(self._credentials)

        with tracker.enter(Stage.SUBMIT):
            job = await session.submit(artifact, sources, request.mode)
            outcome.uuid = job.uuid
            outcome.debug_request = session.last_request

        with tracker.enter(Stage.ANALYSE):
            await session.wait(job, self._schedule(request.mode))

        with tracker.enter(Stage.RETRIEVE):
            reports = await session.retrieve(job)
            outcome.debug_response = reports

        with tracker.enter(Stage.REPORT):
            findings = self._reducer.reduce(reports, artifact, sources)
            if not findings:
                outcome.kind = OutcomeKind.CLEAN
                outcome.message = f"No errors/warnings found in {entry} for contract: {artifact.contract_name}"
                return
            outcome.kind = OutcomeKind.FINDINGS
            outcome.findings = findings
            outcome.rendered = render(request.output_format, findings)

    def _read_entry(self, entry: str) -> str:
        if not self._fs.exists(entry):
            raise SourceReadError(entry, "file not found")
        try:
            return self._fs.read(entry)
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceReadError(entry, str(exc)) from exc


def build_toolchain_cache(config: Config) -> tuple[ToolchainCache, ReleaseIndex]:
    """Return the snapshot cache and release index described by ``config``."""

    settings = config.toolchain
    layout = ToolchainCacheLayout(cache_dir=settings.cache_dir, platform=settings.platform)
    index = ReleaseIndex(
        layout,
        base_url=settings.binaries_url,
        max_age_hours=settings.index_max_age_hours,
    )
    cache = ToolchainCache(FileSnapshotStore(layout), HttpSnapshotFetcher(index))
    return cache, index


def build_severity_rules(config: Config) -> SeverityRuleMap:
    """Compile the configured ``regex=level`` overrides.

    Raises:
        ConfigError: A rule is malformed.
    """

    rules: SeverityRuleMap = {}
    for spec in config.output.severity_rules:
        error = add_custom_rule(spec, rules=rules)
        if error is not None:
            raise ConfigError(error)
    return rules


def build_pipeline(
    config: Config,
    *,
    filesystem: SourceFileSystem | None = None,
    service: AnalysisService | None = None,
    runner: SolcRunner | None = None,
    clock: Clock | None = None,
    cancel_token: CancellationToken | None = None,
    hooks: PipelineHooks | None = None,
) -> AnalysisPipeline:
    """Wire the production collaborators for ``config``; tests inject doubles."""

    fs = filesystem or LocalFileSystem()
    cache, index = build_toolchain_cache(config)
    detector = VersionDetector(
        index.versions,
        policy=config.toolchain.release_policy,
        cached=cache.cached_versions,
    )
    resolver = DependencyResolver(
        fs,
        include_paths=[str(path) for path in config.resolution.include_paths],
        search_node_modules=config.resolution.search_node_modules,
    )
    compiler = CompilationUnit(runner or SubprocessSolcRunner(timeout=config.toolchain.compile_timeout))
    remote = service or MythXService(config.api.url, timeout=config.api.request_timeout)

    def session_factory() -> AnalysisSession:
        return AnalysisSession(
            remote,
            clock=clock,
            cancel_token=cancel_token,
            client_tool_name=config.api.client_tool_name,
            no_cache_lookup=config.api.no_cache_lookup,
        )

    analysis = config.analysis

    def schedule(mode: AnalysisMode) -> PollSchedule:
        return schedule_for(
            mode,
            interval=analysis.poll_interval,
            backoff=analysis.poll_backoff,
            max_interval=analysis.max_poll_interval,
        )

    return AnalysisPipeline(
        filesystem=fs,
        detector=detector,
        cache=cache,
        resolver=resolver,
        compiler=compiler,
        session_factory=session_factory,
        credentials=config.api.credentials(),
        reducer=FindingReducer(severity_rules=build_severity_rules(config)),
        schedule=schedule,
        hooks=hooks,
    )


__all__ = [
    "AnalysisPipeline",
    "AnalysisRequest",
    "OutcomeKind",
    "PipelineHooks",
    "RunOutcome",
    "Stage",
    "build_pipeline",
    "build_severity_rules",
    "build_toolchain_cache",
]
