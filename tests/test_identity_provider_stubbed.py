from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
import requests

from movi.core.errors import IdentityProviderError, NetworkUnreachable, RequestTimeout
from movi.core.session.identity import AuthEvent, GoTrueIdentityProvider
from movi.core.session.models import now_ms


class StubResponse:
    def __init__(self, status_code: int = 200, json_data: Any = None):
        self.status_code = status_code
        self._json_data = json_data
        self.text = "" if json_data is None else json.dumps(json_data)
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._json_data is None:
            raise ValueError("no json")
        return self._json_data


def _token_payload(access: str = "a1", refresh: str = "r1", *, expires_at: int = None) -> Dict[str, Any]:
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_at": expires_at if expires_at is not None else now_ms() // 1000 + 3600,
        "user": {"id": "u1", "email": "ana@example.com", "user_metadata": {"role": "driver"}},
    }


@pytest.fixture
def http(monkeypatch):
    state: Dict[str, Any] = {"calls": [], "responses": []}

    def fake_request(method, url, **kwargs):
        state["calls"].append({"method": method, "url": url, **kwargs})
        r = state["responses"].pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    monkeypatch.setattr(requests, "request", fake_request)
    return state


def _provider() -> GoTrueIdentityProvider:
    return GoTrueIdentityProvider(base_url="http://auth.test/", anon_key="anon-key", timeout_seconds=10)


def test_sign_in_sets_session_and_emits(http):
    http["responses"].append(StubResponse(200, _token_payload()))
    p = _provider()
    events: List[tuple] = []
    p.on_auth_state_change(lambda ev, s: events.append((ev, s.user_id if s else None)))

    s = p.sign_in_with_password("ana@example.com", "pw")

    call = http["calls"][0]
    assert call["method"] == "POST"
    assert call["url"] == "http://auth.test/auth/v1/token"
    assert call["params"] == {"grant_type": "password"}
    assert call["headers"]["apikey"] == "anon-key"
    assert call["timeout"] == 10.0
    assert s.user_id == "u1"
    assert s.user_metadata["role"] == "driver"
    assert s.expires_at > now_ms()
    assert p.current_session() is s
    assert events == [(AuthEvent.SIGNED_IN, "u1")]


def test_provider_error_is_mapped_to_friendly_message(http):
    http["responses"].append(StubResponse(400, {"error_description": "Invalid login credentials"}))

    with pytest.raises(IdentityProviderError) as ei:
        _provider().sign_in_with_password("ana@example.com", "bad")

    assert ei.value.status_code == 400
    assert ei.value.provider_message == "Invalid login credentials"
    assert str(ei.value) == "Incorrect email or password."


def test_email_not_confirmed_message(http):
    http["responses"].append(StubResponse(400, {"msg": "Email not confirmed"}))

    with pytest.raises(IdentityProviderError) as ei:
        _provider().sign_in_with_password("ana@example.com", "pw")

    assert str(ei.value) == "Please confirm your email before signing in."


def test_transport_errors(http):
    http["responses"].extend([requests.Timeout("t"), requests.ConnectionError("c")])
    p = _provider()
    with pytest.raises(RequestTimeout):
        p.get_user("tok")
    with pytest.raises(NetworkUnreachable):
        p.get_user("tok")


def test_set_session_uses_refresh_grant(http):
    http["responses"].append(StubResponse(200, _token_payload("a2", "r2")))
    p = _provider()

    s = p.set_session("a1", "r1")

    call = http["calls"][0]
    assert call["params"] == {"grant_type": "refresh_token"}
    assert call["json"] == {"refresh_token": "r1"}
    assert s.access_token == "a2"


def test_get_session_without_session_makes_no_call(http):
    assert _provider().get_session() is None
    assert http["calls"] == []


def test_get_session_refreshes_expired_session(http):
    expired = _token_payload("old", "r-old", expires_at=now_ms() // 1000 - 10)
    http["responses"].extend([StubResponse(200, expired), StubResponse(200, _token_payload("new", "r-new"))])
    p = _provider()
    p.sign_in_with_password("ana@example.com", "pw")

    s = p.get_session()

    assert s.access_token == "new"
    assert http["calls"][1]["json"] == {"refresh_token": "r-old"}


def test_sign_up_requiring_confirmation(http):
    http["responses"].append(StubResponse(200, {"id": "u1", "email": "ana@example.com"}))

    res = _provider().sign_up("ana@example.com", "pw", data={"role": "business"}, redirect_to="movi://auth/callback")

    assert res.requires_confirmation
    assert res.user["id"] == "u1"
    assert http["calls"][0]["params"] == {"redirect_to": "movi://auth/callback"}
    assert http["calls"][0]["json"]["data"] == {"role": "business"}


def test_sign_out_clears_even_when_logout_fails(http):
    http["responses"].extend([StubResponse(200, _token_payload()), StubResponse(500, {"msg": "boom"})])
    p = _provider()
    events = []
    p.on_auth_state_change(lambda ev, s: events.append(ev))
    p.sign_in_with_password("ana@example.com", "pw")

    with pytest.raises(IdentityProviderError):
        p.sign_out()

    assert p.current_session() is None
    assert events[-1] == AuthEvent.SIGNED_OUT


def test_fetch_profile_reads_first_row(http):
    http["responses"].extend([StubResponse(200, [{"role": "business"}]), StubResponse(200, [])])
    p = _provider()

    assert p.fetch_profile("u1", "tok") == {"role": "business"}
    assert p.fetch_profile("u2", "tok") is None

    call = http["calls"][0]
    assert call["url"] == "http://auth.test/rest/v1/profiles"
    assert call["params"] == {"id": "eq.u1", "select": "role,full_name,phone"}
    assert call["headers"]["Authorization"] == "Bearer tok"
