# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Authenticate, submit, poll and retrieve a single remote analysis job."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, TypeVar

from ..config import Credentials
from ..errors import (
    AnalysisCancelled,
    AnalysisFailed,
    AnalysisTimeout,
    ResultRetrievalError,
    SabreError,
    TransportError,
)
from ..models import AnalysisJob, CompiledArtifact, JobState, JobStatus
from .modes import AnalysisMode, PollSchedule, schedule_for
from .service import AnalysisService
from .timing import CancellationToken, Clock, SystemClock

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisSession:
    """Drive one analysis job through its lifecycle.

    ``unauthenticated -> authenticated -> submitted -> polling`` and then one
    of ``completed``, ``failed`` or ``timed_out``. Every failure is fatal and
    nothing is retried.
    """

    def __init__(
        self,
        service: AnalysisService,
        *,
        clock: Clock | None = None,
        cancel_token: CancellationToken | None = None,
        client_tool_name: str = "sabre",
        no_cache_lookup: bool = False,
    ) -> None:
        self._service = service
        self._clock = clock or SystemClock()
        self._cancel = cancel_token
        self._client_tool_name = client_tool_name
        self._no_cache_lookup = no_cache_lookup
        self._token: str | None = None
        self._state = JobState.UNAUTHENTICATED
        self.last_request: dict[str, Any] | None = None

    @property
    def state(self) -> JobState:
        return self._state

    async def authenticate(self, credentials: Credentials) -> None:
        """Exchange ``credentials`` for a session token.

        Raises:
            AuthenticationError: The service rejected the credentials.
            TransportError: The service could not be reached.
        """

        self._require(JobState.UNAUTHENTICATED, "authenticate")
        self._token = await self._call("authenticate", self._service.authenticate, credentials.eth_address, credentials.password)
        self._state = JobState.AUTHENTICATED

    def build_request(
        self,
        artifact: CompiledArtifact,
        sources: Mapping[str, str],
        mode: AnalysisMode,
    ) -> dict[str, Any]:
        """Return the submission body for ``artifact``."""

        return {
            "clientToolName": self._client_tool_name,
            "noCacheLookup": self._no_cache_lookup,
            "data": {
                "contractName": artifact.contract_name,
                "bytecode": artifact.bytecode,
                "sourceMap": artifact.source_map,
                "deployedBytecode": artifact.deployed_bytecode,
                "deployedSourceMap": artifact.deployed_source_map,
                "mainSource": artifact.entry,
                "sourceList": list(artifact.source_list),
                "sources": {unit: {"source": content} for unit, content in sources.items()},
                "analysisMode": mode.value,
                "solcVersion": artifact.solc_version,
            },
        }

    async def submit(
        self,
        artifact: CompiledArtifact,
        sources: Mapping[str, str],
        mode: AnalysisMode,
    ) -> AnalysisJob:
        """Open a remote job for ``artifact`` and return it in the ``submitted`` state."""

        self._require(JobState.AUTHENTICATED, "submit")
        payload = self.build_request(artifact, sources, mode)
        self.last_request = payload
        uuid = await self._call("submit", self._service.submit, self._token, payload)
        self._state = JobState.SUBMITTED
        LOGGER.debug("submitted analysis job %s (%s mode)", uuid, mode.value)
        return AnalysisJob(
            uuid=uuid,
            mode=mode.value,
            state=JobState.SUBMITTED,
            submitted_at=self._clock.monotonic(),
            created=datetime.now(timezone.utc),
        )

    async def wait(self, job: AnalysisJob, schedule: PollSchedule | None = None) -> AnalysisJob:
        """Poll ``job`` until the service reports it terminal or the timeout elapses.

        Raises:
            AnalysisTimeout: The mode timeout elapsed first.
            AnalysisFailed: The service reported the job as failed.
            AnalysisCancelled: The cancellation token fired.
            TransportError: A status request failed.
        """

        self._require(JobState.SUBMITTED, "wait")
        active = schedule or schedule_for(AnalysisMode(job.mode))
        self._set_state(job, JobState.POLLING)
        intervals = active.intervals()

        await self._pause(active.initial_delay, job)
        while True:
            status = await self._check(job, active)
            if status is JobStatus.COMPLETED:
                self._set_state(job, JobState.COMPLETED)
                return job
            if status is JobStatus.FAILED:
                self._set_state(job, JobState.FAILED)
                raise AnalysisFailed(job.uuid)
            elapsed = self._elapsed(job)
            if elapsed >= active.timeout:
                self._abandon(job, JobState.TIMED_OUT)
                raise AnalysisTimeout(job.uuid, elapsed)
            await self._pause(min(next(intervals), active.timeout - elapsed), job)

    async def retrieve(self, job: AnalysisJob) -> list[dict[str, Any]]:
        """Fetch the raw issue reports of a completed job.

        Raises:
            ResultRetrievalError: The results could not be fetched or decoded.
        """

        if job.state is not JobState.COMPLETED:
            raise RuntimeError(f"cannot retrieve results of job {job.uuid} in state {job.state.value}")
        try:
            reports = await self._call("retrieve", self._service.results, self._token, job.uuid)
        except SabreError as exc:
            raise ResultRetrievalError(job.uuid, str(exc)) from exc
        if not isinstance(reports, list):
            raise ResultRetrievalError(job.uuid, "unexpected result payload")
        return reports

    async def _check(self, job: AnalysisJob, schedule: PollSchedule) -> JobStatus:
        window = schedule.timeout - self._elapsed(job)
        if window <= 0:
            self._abandon(job, JobState.TIMED_OUT)
            raise AnalysisTimeout(job.uuid, self._elapsed(job))
        try:
            return await asyncio.wait_for(
                self._call("poll", self._service.status, self._token, job.uuid, timeout=window),
                timeout=window,
            )
        except TimeoutError:
            self._abandon(job, JobState.TIMED_OUT)
            raise AnalysisTimeout(job.uuid, self._elapsed(job)) from None

    async def _pause(self, seconds: float, job: AnalysisJob) -> None:
        await self._clock.sleep(seconds, self._cancel)
        if self._cancel is not None and self._cancel.cancelled:
            self._abandon(job, JobState.FAILED)
            raise AnalysisCancelled(job.uuid)

    async def _call(self, stage: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except SabreError:
            raise
        except (OSError, ValueError) as exc:
            raise TransportError(stage, str(exc)) from exc

    def _elapsed(self, job: AnalysisJob) -> float:
        return self._clock.monotonic() - job.submitted_at

    def _abandon(self, job: AnalysisJob, state: JobState) -> None:
        self._set_state(job, state)
        self._service.close()

    def _set_state(self, job: AnalysisJob, state: JobState) -> None:
        job.state = state
        self._state = state

    def _require(self, expected: JobState, action: str) -> None:
        if self._state is not expected:
            raise RuntimeError(f"cannot {action} in state {self._state.value}")


__all__ = ["AnalysisSession"]
