# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the MythX HTTP client."""

from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from sabre.client import MythXService
from sabre.errors import AuthenticationError, TransportError
from sabre.models import JobStatus


def _response(status: int, body: Any = None, *, raw: bytes | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = raw if raw is not None else json.dumps(body).encode("utf-8")
    response.encoding = "utf-8"
    return response


class ScriptedSession:
    def __init__(self, *responses: requests.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.requests.append({"method": method, "url": url, **kwargs})
        outcome = self._responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True


def _service(*responses: requests.Response | Exception) -> tuple[MythXService, ScriptedSession]:
    session = ScriptedSession(*responses)
    return MythXService("https://api.example.test/v1/", session=session), session


def test_login_returns_access_token() -> None:
    service, session = _service(_response(200, {"jwtTokens": {"access": "abc", "refresh": "def"}}))

    assert service.authenticate("0x1234", "secret") == "abc"
    sent = session.requests[0]
    assert sent["method"] == "POST"
    assert sent["url"] == "https://api.example.test/v1/auth/login"
    assert sent["json"] == {"ethAddress": "0x1234", "password": "secret"}


@pytest.mark.parametrize("status", [400, 401, 403])
def test_rejected_login_is_an_authentication_error(status: int) -> None:
    service, _ = _service(_response(status, {"error": "Wrong password"}))

    with pytest.raises(AuthenticationError, match="Wrong password"):
        service.authenticate("0x1234", "bad")


def test_login_server_error_is_a_transport_error() -> None:
    service, _ = _service(_response(502, raw=b"Bad gateway"))

    with pytest.raises(TransportError) as excinfo:
        service.authenticate("0x1234", "secret")

    assert excinfo.value.stage == "authenticate"


def test_submit_sends_bearer_token_and_returns_uuid() -> None:
    service, session = _service(_response(200, {"uuid": "ab-12", "status": "Queued"}))

    assert service.submit("tok", {"data": {}}) == "ab-12"
    sent = session.requests[0]
    assert sent["url"].endswith("/analyses")
    assert sent["headers"] == {"Authorization": "Bearer tok"}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Queued", JobStatus.PENDING),
        ("In Progress", JobStatus.PENDING),
        ("Finished", JobStatus.COMPLETED),
        ("Error", JobStatus.FAILED),
    ],
)
def test_status_mapping(raw: str, expected: JobStatus) -> None:
    service, session = _service(_response(200, {"uuid": "ab-12", "status": raw}))

    assert service.status("tok", "ab-12") is expected
    assert session.requests[0]["url"].endswith("/analyses/ab-12")


def test_results_are_fetched_from_issues_endpoint() -> None:
    reports = [{"issues": [{"swcID": "SWC-107"}], "sourceList": ["Token.sol"]}]
    service, session = _service(_response(200, reports))

    assert service.results("tok", "ab-12") == reports
    assert session.requests[0]["url"].endswith("/analyses/ab-12/issues")


def test_network_failure_names_the_stage() -> None:
    service, _ = _service(requests.ConnectionError("no route to host"))

    with pytest.raises(TransportError) as excinfo:
        service.status("tok", "ab-12")

    assert excinfo.value.stage == "poll"


def test_invalid_json_is_a_transport_error() -> None:
    service, _ = _service(_response(200, raw=b"<html>"))

    with pytest.raises(TransportError, match="invalid JSON"):
        service.results("tok", "ab-12")


def test_status_request_timeout_is_capped_by_the_caller() -> None:
    service, session = _service(
        _response(200, {"uuid": "ab-12", "status": "Queued"}),
        _response(200, {"uuid": "ab-12", "status": "Queued"}),
    )

    service.status("tok", "ab-12", timeout=2.5)
    service.status("tok", "ab-12", timeout=90.0)

    assert [sent["timeout"] for sent in session.requests] == [2.5, 30.0]


def test_close_releases_the_http_session() -> None:
    service, session = _service()

    service.close()

    assert session.closed
