from __future__ import annotations

from movi.core.session.identity import AuthEvent, GoTrueIdentityProvider, IdentityProvider
from movi.core.session.manager import SessionManager
from movi.core.session.models import (
    AuthProfile,
    AuthStatus,
    RestoreState,
    Role,
    Session,
    SessionCheckState,
    StoredSession,
)

__all__ = [
    "AuthEvent",
    "AuthProfile",
    "AuthStatus",
    "GoTrueIdentityProvider",
    "IdentityProvider",
    "RestoreState",
    "Role",
    "Session",
    "SessionCheckState",
    "SessionManager",
    "StoredSession",
]
