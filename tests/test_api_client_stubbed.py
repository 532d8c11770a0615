"""
Test: authenticated request wrapper (stubbed HTTP).

Uses monkeypatched requests to simulate the backend. No real server needed.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
import requests

from movi.core.api import ApiClient, parse_error_body
from movi.core.errors import (
    AuthenticationExpired,
    NetworkUnreachable,
    RequestTimeout,
    ServerFault,
    ValidationRejected,
    is_auth_error,
    is_network_error,
)
from movi.core.session.manager import SECURE_KEY
from movi.core.session.models import SessionCheckState

from .helpers.fakes import make_session


# ---------------------------------------------------------------------------
# Stub HTTP responses
# ---------------------------------------------------------------------------


class StubResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: str = ""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text if text or json_data is None else json.dumps(json_data)
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._json_data is None:
            raise ValueError("no json")
        return self._json_data


def _install(monkeypatch, responses: List[Any]) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    def fake_request(method, url, **kwargs):
        calls.append({"method": method, "url": url, **kwargs})
        r = responses[min(len(calls), len(responses)) - 1]
        if isinstance(r, Exception):
            raise r
        return r

    monkeypatch.setattr(requests, "request", fake_request)
    return calls


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_attaches_bearer_token_and_json_header(harness, monkeypatch):
    harness.manager.apply_session(make_session(access_token="tok-123"))
    calls = _install(monkeypatch, [StubResponse(200, [{"id": "s1"}])])

    out = harness.api.get("/shipments", params={"scope": "mine"})

    assert out == [{"id": "s1"}]
    assert calls[0]["url"] == "http://api.test/shipments"
    assert calls[0]["headers"]["Authorization"] == "Bearer tok-123"
    assert calls[0]["headers"]["Content-Type"] == "application/json"
    assert calls[0]["params"] == {"scope": "mine"}
    assert calls[0]["timeout"] == 15.0


def test_no_authorization_header_without_session(harness, monkeypatch):
    calls = _install(monkeypatch, [StubResponse(200, {"ok": True})])

    harness.api.post("/auth/exchange", json={"access_token": "x"})

    assert "Authorization" not in calls[0]["headers"]
    assert calls[0]["json"] == {"access_token": "x"}


def test_401_signs_out_alerts_once_and_does_not_retry(harness, monkeypatch):
    harness.manager.apply_session(make_session())
    shown = []
    harness.alerts.subscribe(shown.append)
    calls = _install(monkeypatch, [StubResponse(401, {"error": "jwt expired"})])

    with pytest.raises(AuthenticationExpired) as ei:
        harness.api.get("/profile/me")

    assert len(calls) == 1
    assert len(shown) == 1
    assert shown[0].title == "Session expired"
    assert ei.value.status_code == 401
    assert ei.value.server_message == "jwt expired"
    assert is_auth_error(ei.value)
    assert harness.storage.secure.get(SECURE_KEY) is None
    assert harness.manager.session is None
    assert harness.manager.check_state() == SessionCheckState.checked_absent
    assert harness.provider.sign_out_calls == 1


def test_401_with_listener_running_clears_role(harness, monkeypatch):
    harness.manager.start_auth_listener()
    harness.manager.apply_session(make_session(metadata={"role": "business"}))
    shown = []
    harness.alerts.subscribe(shown.append)
    _install(monkeypatch, [StubResponse(401, {"error": "jwt expired"})])

    with pytest.raises(AuthenticationExpired):
        harness.api.get("/shipments")

    assert len(shown) == 1
    assert harness.manager.session is None
    assert harness.manager.role is None
    assert harness.manager.check_state() == SessionCheckState.checked_absent


def test_4xx_raises_validation_rejected_with_friendly_message(harness, monkeypatch):
    _install(monkeypatch, [StubResponse(422, {"message": "price must be positive", "details": {"field": "price"}})])

    with pytest.raises(ValidationRejected) as ei:
        harness.api.post("/shipments", json={})

    assert ei.value.status_code == 422
    assert ei.value.server_message == "price must be positive"
    assert ei.value.details == {"field": "price"}
    assert ei.value.user_message == "The submitted data is not valid."
    assert harness.alerts.visible is False


def test_unmapped_4xx_uses_server_message(harness, monkeypatch):
    _install(monkeypatch, [StubResponse(409, {"error": "Shipment already assigned"})])

    with pytest.raises(ValidationRejected) as ei:
        harness.api.post("/shipments/s1/accept")

    assert str(ei.value) == "Shipment already assigned"


def test_5xx_raises_server_fault_from_text_body(harness, monkeypatch):
    _install(monkeypatch, [StubResponse(503, text="upstream down")])

    with pytest.raises(ServerFault) as ei:
        harness.api.get("/shipments")

    assert ei.value.status_code == 503
    assert ei.value.server_message == "upstream down"
    assert ei.value.recoverable is True


def test_timeout_and_transport_errors(harness, monkeypatch):
    _install(monkeypatch, [requests.Timeout("slow")])
    with pytest.raises(RequestTimeout) as ei:
        harness.api.get("/shipments")
    assert is_network_error(ei.value)

    _install(monkeypatch, [requests.ConnectionError("refused")])
    with pytest.raises(NetworkUnreachable):
        harness.api.get("/shipments")


def test_204_returns_none(harness, monkeypatch):
    _install(monkeypatch, [StubResponse(204)])
    assert harness.api.put("/profile/me", json={"full_name": "A"}) is None


def test_check_health(monkeypatch):
    api = ApiClient(base_url="http://api.test/", session_manager=None)
    seen = {}

    def fake_get(url, timeout):
        seen["url"] = url
        seen["timeout"] = timeout
        return StubResponse(200, {"status": "ok"})

    monkeypatch.setattr(requests, "get", fake_get)
    assert api.check_health() is True
    assert seen == {"url": "http://api.test/health", "timeout": 5.0}

    def boom(url, timeout):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "get", boom)
    assert api.check_health() is False


def test_parse_error_body_fallbacks():
    assert parse_error_body(StubResponse(500)) == ("Error 500", None)
    assert parse_error_body(StubResponse(400, text='{"error": "bad"}'))[0] == "bad"
    assert parse_error_body(StubResponse(400, ["x"])) == ("Error 400", ["x"])
