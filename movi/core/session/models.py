from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    return int(time.time() * 1000)


class Role(str, Enum):
    driver = "driver"
    business = "business"


def parse_role(value: Any) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value))
    except ValueError:
        return None


class SessionCheckState(str, Enum):
    """
    Persisted flag: has restoration already settled for this install?
    """

    not_checked = "not_checked"
    checked_present = "checked_present"
    checked_absent = "checked_absent"


class RestoreState(str, Enum):
    idle = "idle"
    checking = "checking"
    checked_present = "checked_present"
    checked_absent = "checked_absent"


class AuthStatus(str, Enum):
    idle = "idle"
    loading = "loading"
    authenticated = "authenticated"
    unauthenticated = "unauthenticated"


class AuthFailureKind(str, Enum):
    network = "network"
    provider = "provider"
    storage = "storage"
    unknown = "unknown"


class AuthFailure(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: AuthFailureKind
    message: str


class AuthProfile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Role
    full_name: Optional[str] = None
    phone: Optional[str] = None


class Session(BaseModel):
    """
    Provider session as held in memory.
    """

    model_config = ConfigDict(extra="forbid")

    access_token: str
    refresh_token: str = ""
    expires_at: int  # epoch ms
    user_id: str
    user_email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, *, skew_ms: int = 0, now: Optional[int] = None) -> bool:
        t = now_ms() if now is None else now
        return t + skew_ms >= self.expires_at

    @classmethod
    def from_provider(cls, payload: Dict[str, Any]) -> "Session":
        """
        Build from a GoTrue token response ({access_token, refresh_token, expires_at|expires_in, user}).
        """
        user = payload.get("user") or {}
        expires_at = payload.get("expires_at")
        if isinstance(expires_at, (int, float)):
            # provider reports seconds
            exp_ms = int(expires_at * 1000)
        else:
            exp_ms = now_ms() + int(payload.get("expires_in") or 3600) * 1000
        return cls(
            access_token=str(payload["access_token"]),
            refresh_token=str(payload.get("refresh_token") or ""),
            expires_at=exp_ms,
            user_id=str(user["id"]),
            user_email=user.get("email"),
            user_metadata=dict(user.get("user_metadata") or {}),
        )


class StoredUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None


class StoredSession(BaseModel):
    """
    Secure-storage record: {accessToken, refreshToken, expiresAt, user: {id, email}}.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    expires_at: int = Field(alias="expiresAt")
    user: StoredUser

    @classmethod
    def from_session(cls, session: Session) -> "StoredSession":
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token or "",
            expires_at=int(session.expires_at),
            user=StoredUser(id=session.user_id, email=session.user_email),
        )

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def is_usable(self, *, skew_ms: int, now: Optional[int] = None) -> bool:
        t = now_ms() if now is None else now
        return t + skew_ms < self.expires_at
