# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Remote analysis service boundary and its HTTP implementation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Final, Protocol

import requests

from ..errors import AuthenticationError, TransportError
from ..models import JobStatus

LOGGER = logging.getLogger(__name__)

_FINISHED_STATUSES: Final[frozenset[str]] = frozenset({"finished", "completed"})
_FAILED_STATUSES: Final[frozenset[str]] = frozenset({"error", "failed"})
_AUTH_FAILURE_CODES: Final[frozenset[int]] = frozenset({400, 401, 403})


class AnalysisService(Protocol):
    """Operations offered by the remote analysis service."""

    def authenticate(self, eth_address: str, password: str) -> str:
        """Return a session token for the given credentials."""
        ...

    def submit(self, token: str, payload: Mapping[str, Any]) -> str:
        """Open an analysis job and return its UUID."""
        ...

    def status(self, token: str, uuid: str, *, timeout: float | None = None) -> JobStatus:
        """Return the current status of job ``uuid`` within ``timeout`` seconds."""
        ...

    def results(self, token: str, uuid: str) -> list[dict[str, Any]]:
        """Return the raw issue reports of a finished job."""
        ...

    def close(self) -> None:
        """Release connections, abandoning any request still in flight."""
        ...


class MythXService:
    """JSON-over-HTTPS client for the MythX v1 API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = session or requests.Session()

    def authenticate(self, eth_address: str, password: str) -> str:
        response = self._request(
            "authenticate",
            "POST",
            "/auth/login",
            json={"ethAddress": eth_address, "password": password},
        )
        if response.status_code in _AUTH_FAILURE_CODES:
            raise AuthenticationError(f"Authentication failed for {eth_address}: {_error_text(response)}")
        body = self._decode("authenticate", response)
        tokens = body.get("jwtTokens") if isinstance(body, Mapping) else None
        access = tokens.get("access") if isinstance(tokens, Mapping) else None
        if not access:
            raise TransportError("authenticate", "login response did not contain an access token")
        return str(access)

    def submit(self, token: str, payload: Mapping[str, Any]) -> str:
        response = self._request("submit", "POST", "/analyses", json=dict(payload), token=token)
        body = self._decode("submit", response)
        uuid = body.get("uuid") if isinstance(body, Mapping) else None
        if not uuid:
            raise TransportError("submit", "submission response did not contain a job UUID")
        return str(uuid)

    def status(self, token: str, uuid: str, *, timeout: float | None = None) -> JobStatus:
        response = self._request("poll", "GET", f"/analyses/{uuid}", token=token, timeout=timeout)
        body = self._decode("poll", response)
        raw = str(body.get("status", "") if isinstance(body, Mapping) else "").strip().lower()
        if raw in _FINISHED_STATUSES:
            return JobStatus.COMPLETED
        if raw in _FAILED_STATUSES:
            return JobStatus.FAILED
        return JobStatus.PENDING

    def results(self, token: str, uuid: str) -> list[dict[str, Any]]:
        response = self._request("retrieve", "GET", f"/analyses/{uuid}/issues", token=token)
        body = self._decode("retrieve", response)
        if isinstance(body, Mapping):
            body = [body]
        if not isinstance(body, list):
            raise TransportError("retrieve", "issue report must be a list")
        return [dict(report) for report in body if isinstance(report, Mapping)]

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        stage: str,
        method: str,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        limit = self._timeout if timeout is None else min(self._timeout, timeout)
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        url = f"{self._base_url}{path}"
        LOGGER.debug("%s %s", method, url)
        try:
            response = self._http.request(method, url, json=json, headers=headers, timeout=limit)
        except requests.RequestException as exc:
            raise TransportError(stage, str(exc)) from exc
        if stage == "authenticate" and response.status_code in _AUTH_FAILURE_CODES:
            return response
        if response.status_code >= 400:
            raise TransportError(stage, f"HTTP {response.status_code}: {_error_text(response)}")
        return response

    @staticmethod
    def _decode(stage: str, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(stage, f"invalid JSON response: {exc}") from exc


def _error_text(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, Mapping):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])
    return response.text[:200]


__all__ = ["AnalysisService", "MythXService"]
