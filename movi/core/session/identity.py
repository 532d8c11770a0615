"""
Identity provider client (GoTrue-compatible REST auth service).

Endpoints used:
- POST /auth/v1/token?grant_type=password        sign in
- POST /auth/v1/token?grant_type=refresh_token   refresh / restore
- POST /auth/v1/signup                           sign up
- GET  /auth/v1/user                             validate access token
- POST /auth/v1/logout                           sign out
- POST /auth/v1/resend, /auth/v1/recover         confirmation / password reset mails
- GET  /rest/v1/profiles?id=eq.<uid>             role lookup

Every call is a single request with a fixed timeout. Nothing is retried and
tokens are never refreshed in the background.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

import requests

from movi.core.errors import IdentityProviderError, NetworkUnreachable, RequestTimeout
from movi.core.events import EventEmitter
from movi.core.session.models import Session


AUTH_STATE_CHANGED = "auth.state_changed"


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Optional[Session]], None]


@dataclass(frozen=True)
class SignUpResult:
    user: Dict[str, Any]
    session: Optional[Session] = None

    @property
    def requires_confirmation(self) -> bool:
        return self.session is None


class IdentityProvider(Protocol):
    def sign_in_with_password(self, email: str, password: str) -> Session: ...

    def sign_up(self, email: str, password: str, *, data: Dict[str, Any], redirect_to: Optional[str] = None) -> SignUpResult: ...

    def set_session(self, access_token: str, refresh_token: str) -> Session: ...

    def get_session(self) -> Optional[Session]: ...

    def get_user(self, access_token: Optional[str] = None) -> Dict[str, Any]: ...

    def sign_out(self) -> None: ...

    def resend_signup(self, email: str, *, redirect_to: Optional[str] = None) -> None: ...

    def reset_password_for_email(self, email: str, *, redirect_to: Optional[str] = None) -> None: ...

    def fetch_profile(self, user_id: str, access_token: str) -> Optional[Dict[str, Any]]: ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]: ...


def _error_message(resp: Any) -> str:
    try:
        data = resp.json()
    except ValueError:
        return (getattr(resp, "text", "") or "").strip() or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        for k in ("error_description", "msg", "message", "error"):
            v = data.get(k)
            if isinstance(v, str) and v:
                return v
    return f"HTTP {resp.status_code}"


class GoTrueIdentityProvider:
    """
    Holds the provider-side session in memory and emits auth-state events.
    """

    def __init__(self, *, base_url: str, anon_key: str, timeout_seconds: float = 15.0, logger=None):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout_seconds = float(timeout_seconds)
        self.logger = logger
        self._lock = threading.Lock()
        self._session: Optional[Session] = None
        self._emitter = EventEmitter(logger=logger)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
            "Content-Type": "application/json",
        }

    # ── HTTP ───────────────────────────────────────────────────────

    def _call(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        headers = self._headers(access_token)
        if extra_headers:
            headers.update(extra_headers)
        try:
            r = requests.request(
                method,
                self._url(path),
                headers=headers,
                json=json,
                params=params,
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            raise RequestTimeout(endpoint=path) from e
        except requests.RequestException as e:
            raise NetworkUnreachable(endpoint=path, error=str(e)) from e
        if r.status_code >= 400:
            raise IdentityProviderError(_error_message(r), status_code=r.status_code, endpoint=path)
        if r.status_code == 204 or not (r.content or b""):
            return None
        return r.json()

    # ── session state ──────────────────────────────────────────────

    def _set_current(self, session: Optional[Session], event: AuthEvent) -> None:
        with self._lock:
            self._session = session
        self._emitter.emit(AUTH_STATE_CHANGED, event, session)

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        return self._emitter.on(AUTH_STATE_CHANGED, listener)

    def current_session(self) -> Optional[Session]:
        with self._lock:
            return self._session

    # ── auth flows ─────────────────────────────────────────────────

    def sign_in_with_password(self, email: str, password: str) -> Session:
        data = self._call("POST", "/auth/v1/token", params={"grant_type": "password"}, json={"email": email, "password": password})
        session = Session.from_provider(data)
        self._set_current(session, AuthEvent.SIGNED_IN)
        return session

    def sign_up(self, email: str, password: str, *, data: Dict[str, Any], redirect_to: Optional[str] = None) -> SignUpResult:
        params = {"redirect_to": redirect_to} if redirect_to else None
        body = self._call("POST", "/auth/v1/signup", params=params, json={"email": email, "password": password, "data": data}) or {}
        if body.get("access_token"):
            session = Session.from_provider(body)
            self._set_current(session, AuthEvent.SIGNED_IN)
            return SignUpResult(user=dict(body.get("user") or {}), session=session)
        # confirmation pending: the body is the bare user object
        return SignUpResult(user=dict(body.get("user") or body))

    def refresh_session(self, refresh_token: str) -> Session:
        data = self._call("POST", "/auth/v1/token", params={"grant_type": "refresh_token"}, json={"refresh_token": refresh_token})
        session = Session.from_provider(data)
        self._set_current(session, AuthEvent.TOKEN_REFRESHED)
        return session

    def set_session(self, access_token: str, refresh_token: str) -> Session:
        """
        Adopt an externally held token pair (persisted record, deep link).

        The refresh grant both validates the pair and yields fresh expiry
        information in one round trip.
        """
        if not refresh_token:
            raise IdentityProviderError("Refresh token missing.")
        data = self._call("POST", "/auth/v1/token", params={"grant_type": "refresh_token"}, json={"refresh_token": refresh_token})
        session = Session.from_provider(data)
        self._set_current(session, AuthEvent.SIGNED_IN)
        return session

    def get_session(self) -> Optional[Session]:
        """
        Live provider session, refreshed once if its access token has expired.
        """
        current = self.current_session()
        if current is None:
            return None
        if not current.is_expired():
            return current
        if not current.refresh_token:
            self._set_current(None, AuthEvent.SIGNED_OUT)
            return None
        return self.refresh_session(current.refresh_token)

    def get_user(self, access_token: Optional[str] = None) -> Dict[str, Any]:
        token = access_token
        if token is None:
            current = self.current_session()
            if current is None:
                raise IdentityProviderError("Auth session missing!")
            token = current.access_token
        return self._call("GET", "/auth/v1/user", access_token=token) or {}

    def sign_out(self) -> None:
        current = self.current_session()
        try:
            if current is not None:
                self._call("POST", "/auth/v1/logout", access_token=current.access_token)
        finally:
            self._set_current(None, AuthEvent.SIGNED_OUT)

    def resend_signup(self, email: str, *, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._call("POST", "/auth/v1/resend", params=params, json={"type": "signup", "email": email})

    def reset_password_for_email(self, email: str, *, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._call("POST", "/auth/v1/recover", params=params, json={"email": email})

    # ── profiles table ─────────────────────────────────────────────

    def fetch_profile(self, user_id: str, access_token: str) -> Optional[Dict[str, Any]]:
        rows = self._call(
            "GET",
            "/rest/v1/profiles",
            params={"id": f"eq.{user_id}", "select": "role,full_name,phone"},
            access_token=access_token,
        )
        if isinstance(rows, list):
            return rows[0] if rows else None
        return rows if isinstance(rows, dict) else None
