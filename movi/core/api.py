"""
Authenticated HTTP client for the Movi backend.

Flow per request:
1. Attach bearer token from the SessionManager (if any)
2. One request, fixed timeout (no retries, no token refresh)
3. 401 -> sign out + one "Session expired" alert + AuthenticationExpired
4. Other non-2xx -> ValidationRejected (4xx) / ServerFault (5xx)
"""
from __future__ import annotations

import json as jsonlib
from typing import Any, Dict, Optional, Tuple

import requests

from movi.core.alerts import SESSION_EXPIRED_ALERT, AlertChannel
from movi.core.errors import (
    AuthenticationExpired,
    NetworkUnreachable,
    RequestTimeout,
    ServerFault,
    ValidationRejected,
)


def parse_error_body(resp: Any) -> Tuple[str, Any]:
    """
    Extract (server_message, details) from an error response.

    JSON bodies use "error" or "message"; plain text bodies are taken as-is.
    """
    fallback = f"Error {resp.status_code}"
    text = getattr(resp, "text", None)
    try:
        data = resp.json()
    except ValueError:
        data = None
        if isinstance(text, str) and text.strip():
            try:
                data = jsonlib.loads(text)
            except ValueError:
                return text.strip(), None
    if isinstance(data, dict):
        msg = data.get("error") or data.get("message") or fallback
        return str(msg), data.get("details", data)
    return fallback, data


class ApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        session_manager,
        alerts: Optional[AlertChannel] = None,
        timeout_seconds: float = 15.0,
        health_timeout_seconds: float = 5.0,
        logger=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_manager = session_manager
        self.alerts = alerts
        self.timeout_seconds = float(timeout_seconds)
        self.health_timeout_seconds = float(health_timeout_seconds)
        self.logger = logger

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session_manager.access_token() if self.session_manager is not None else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    # ── requests ───────────────────────────────────────────────────

    def request(
        self,
        path: str,
        method: str = "GET",
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        method = method.upper()
        try:
            r = requests.request(
                method,
                self._url(path),
                headers=self._headers(headers),
                json=json,
                params=params,
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as e:
            if self.logger:
                self.logger.warning(f"{method} {path} timed out after {self.timeout_seconds}s")
            raise RequestTimeout(endpoint=path) from e
        except requests.RequestException as e:
            if self.logger:
                self.logger.warning(f"{method} {path} failed: {type(e).__name__}")
            raise NetworkUnreachable(endpoint=path, error=type(e).__name__) from e

        if r.status_code == 401:
            self._expire_session(path)
            server_message, details = parse_error_body(r)
            raise AuthenticationExpired(server_message=server_message, details=details)

        if r.status_code >= 400:
            server_message, details = parse_error_body(r)
            if self.logger:
                self.logger.warning(f"{method} {path} -> HTTP {r.status_code}: {server_message}")
            if r.status_code >= 500:
                raise ServerFault(r.status_code, server_message=server_message, details=details)
            raise ValidationRejected(r.status_code, server_message=server_message, details=details)

        if r.status_code == 204 or not (r.content or b""):
            return None
        try:
            return r.json()
        except ValueError:
            return r.text

    def _expire_session(self, path: str) -> None:
        if self.logger:
            self.logger.warning(f"Backend rejected the session on {path}; signing out.")
        if self.session_manager is not None:
            try:
                self.session_manager.sign_out()
            except Exception as e:  # noqa: BLE001
                if self.logger:
                    self.logger.warning(f"Sign-out after 401 failed: {e}")
        if self.alerts is not None:
            self.alerts.show_alert(SESSION_EXPIRED_ALERT)

    def get(self, path: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request(path, "GET", params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request(path, "POST", json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request(path, "PUT", json=json)

    # ── readiness ──────────────────────────────────────────────────

    def check_health(self) -> bool:
        try:
            r = requests.get(self._url("/health"), timeout=self.health_timeout_seconds)
            return r.status_code == 200
        except Exception as e:  # noqa: BLE001
            if self.logger:
                self.logger.info(f"Health check failed: {type(e).__name__}")
            return False
