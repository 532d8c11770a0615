from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from movi.core.errors import IdentityProviderError, StorageError
from movi.core.events import EventEmitter
from movi.core.session.identity import AUTH_STATE_CHANGED, AuthEvent, SignUpResult
from movi.core.session.models import Session, now_ms


class ListLogger:
    def __init__(self):
        self.records: List[tuple] = []

    def info(self, msg, *_a, **_k):
        self.records.append(("info", str(msg)))

    def warning(self, msg, *_a, **_k):
        self.records.append(("warning", str(msg)))

    def error(self, msg, *_a, **_k):
        self.records.append(("error", str(msg)))

    def text(self) -> str:
        return "\n".join(m for _lvl, m in self.records)


def make_session(
    *,
    user_id: str = "user-1",
    email: str = "ana@example.com",
    access_token: str = "access-1",
    refresh_token: str = "refresh-1",
    expires_in_s: int = 3600,
    metadata: Optional[Dict[str, Any]] = None,
) -> Session:
    return Session(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=now_ms() + expires_in_s * 1000,
        user_id=user_id,
        user_email=email,
        user_metadata=dict(metadata if metadata is not None else {"role": "driver", "full_name": "Ana"}),
    )


class FakeIdentityProvider:
    """
    In-memory identity provider with call counters.

    - gate: when set, set_session/get_session block until gate.set() (or forever)
    - started: set as soon as a gated call begins
    """

    def __init__(self, *, live_session: Optional[Session] = None, gate: Optional[threading.Event] = None):
        self.live_session = live_session
        self.gate = gate
        self.started = threading.Event()
        self.emitter = EventEmitter()
        self.profiles: Dict[str, Dict[str, Any]] = {}

        self.set_session_calls = 0
        self.get_session_calls = 0
        self.sign_out_calls = 0
        self.fetch_profile_calls = 0
        self.sign_in_calls = 0

        self.set_session_result: Optional[Session] = None
        self.set_session_error: Optional[Exception] = None
        self.get_session_error: Optional[Exception] = None
        self.sign_out_error: Optional[Exception] = None
        self.fetch_profile_error: Optional[Exception] = None
        self.sign_in_error: Optional[Exception] = None
        self.sign_up_needs_confirmation = False
        self.user_payload: Dict[str, Any] = {}
        self.resent: List[str] = []
        self.recovered: List[str] = []
        self.last_sign_up: Optional[Dict[str, Any]] = None
        self.last_set_session: Optional[tuple] = None

    def _wait_gate(self) -> None:
        self.started.set()
        if self.gate is not None:
            self.gate.wait()

    def _emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        self.emitter.emit(AUTH_STATE_CHANGED, event, session)

    def on_auth_state_change(self, listener) -> Callable[[], None]:
        return self.emitter.on(AUTH_STATE_CHANGED, listener)

    def set_session(self, access_token: str, refresh_token: str) -> Session:
        self.set_session_calls += 1
        self.last_set_session = (access_token, refresh_token)
        self._wait_gate()
        if self.set_session_error is not None:
            raise self.set_session_error
        session = self.set_session_result or make_session(access_token=access_token, refresh_token=refresh_token)
        self.live_session = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def get_session(self) -> Optional[Session]:
        self.get_session_calls += 1
        self._wait_gate()
        if self.get_session_error is not None:
            raise self.get_session_error
        return self.live_session

    def sign_in_with_password(self, email: str, password: str) -> Session:
        self.sign_in_calls += 1
        if self.sign_in_error is not None:
            raise self.sign_in_error
        session = self.live_session or make_session(email=email)
        self.live_session = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    def sign_up(self, email: str, password: str, *, data: Dict[str, Any], redirect_to: Optional[str] = None) -> SignUpResult:
        self.last_sign_up = {"email": email, "data": dict(data), "redirect_to": redirect_to}
        user = {"id": "user-new", "email": email, "user_metadata": dict(data)}
        if self.sign_up_needs_confirmation:
            return SignUpResult(user=user)
        session = make_session(user_id="user-new", email=email, access_token="access-new", metadata=dict(data))
        self.live_session = session
        return SignUpResult(user=user, session=session)

    def get_user(self, access_token: Optional[str] = None) -> Dict[str, Any]:
        if self.user_payload:
            return dict(self.user_payload)
        s = self.live_session
        if s is None:
            raise IdentityProviderError("Auth session missing!")
        return {"id": s.user_id, "email": s.user_email, "user_metadata": dict(s.user_metadata)}

    def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.live_session = None
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self._emit(AuthEvent.SIGNED_OUT, None)

    def resend_signup(self, email: str, *, redirect_to: Optional[str] = None) -> None:
        self.resent.append(email)

    def reset_password_for_email(self, email: str, *, redirect_to: Optional[str] = None) -> None:
        self.recovered.append(email)

    def fetch_profile(self, user_id: str, access_token: str) -> Optional[Dict[str, Any]]:
        self.fetch_profile_calls += 1
        if self.fetch_profile_error is not None:
            raise self.fetch_profile_error
        return self.profiles.get(user_id)

    def network_calls(self) -> int:
        return self.set_session_calls + self.get_session_calls


class FailingRegion:
    """Storage region whose every operation fails."""

    def get(self, key: str) -> Any:
        raise StorageError("boom", key=key)

    def set(self, key: str, value: Any) -> None:
        raise StorageError("boom", key=key)

    def delete(self, key: str) -> None:
        raise StorageError("boom", key=key)

    def clear(self) -> None:
        raise StorageError("boom")


class StubApi:
    """
    Records ApiClient-style calls and returns canned responses keyed by (method, path).
    """

    def __init__(self, responses: Optional[Dict[tuple, Any]] = None):
        self.responses = dict(responses or {})
        self.calls: List[Dict[str, Any]] = []

    def _answer(self, method: str, path: str) -> Any:
        r = self.responses.get((method, path))
        if isinstance(r, Exception):
            raise r
        return r

    def request(self, path: str, method: str = "GET", *, json: Any = None, params=None, headers=None) -> Any:
        self.calls.append({"method": method, "path": path, "json": json, "params": params})
        return self._answer(method, path)

    def get(self, path: str, *, params=None) -> Any:
        return self.request(path, "GET", params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request(path, "POST", json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request(path, "PUT", json=json)
