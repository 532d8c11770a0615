"""
SessionManager: single source of truth for "who is signed in, and as what role".

State lives on the instance (no module globals):
- restore lock/busy flag: at most one restoration in flight
- attempted flag: restoration settles at most once per process unless re-armed
- op id: a slower, older operation never overwrites a newer one's result

Storage split:
- secure region: the token record (SECURE_KEY)
- cache region: role + persisted session check flag
"""
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from movi.core.errors import IdentityProviderError, NetworkError, RequestTimeout, StorageError
from movi.core.session.identity import AuthEvent, IdentityProvider
from movi.core.session.models import (
    AuthFailure,
    AuthFailureKind,
    AuthProfile,
    AuthStatus,
    RestoreState,
    Role,
    Session,
    SessionCheckState,
    StoredSession,
    parse_role,
)
from movi.core.storage import StoragePort

SECURE_KEY = "movi_auth_session"
ROLE_KEY = "role"
CHECK_KEY = "sessionChecked"

# restoration runs provider calls on these threads only
PROVIDER_THREAD_PREFIX = "movi-auth"


def profile_from_metadata(metadata: Dict[str, Any]) -> Optional[AuthProfile]:
    role = parse_role((metadata or {}).get("role"))
    if role is None:
        return None
    full_name = metadata.get("full_name")
    phone = metadata.get("phone")
    return AuthProfile(
        role=role,
        full_name=full_name if isinstance(full_name, str) else None,
        phone=phone if isinstance(phone, str) else None,
    )

def _failure_from(exc: BaseException) -> AuthFailure:
    if isinstance(exc, (NetworkError, FutureTimeout)):
        kind = AuthFailureKind.network
    elif isinstance(exc, IdentityProviderError):
        kind = AuthFailureKind.provider
    elif isinstance(exc, StorageError):
        kind = AuthFailureKind.storage
    else:
        kind = AuthFailureKind.unknown
    return AuthFailure(kind=kind, message=str(exc) or type(exc).__name__)

class SessionManager:
    def __init__(
        self,
        *,
        provider: IdentityProvider,
        storage: StoragePort,
        timeout_seconds: float = 10.0,
        skew_seconds: int = 30,
        logger=None,
        event_logger=None,
    ):
        self.provider = provider
        self.storage = storage
        self.timeout_seconds = float(timeout_seconds)
        self.skew_ms = int(skew_seconds) * 1000
        self.logger = logger
        self.event_logger = event_logger

        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix=PROVIDER_THREAD_PREFIX)
        self._checked = threading.Event()
        self._checked.set()

        self._restoring = False
        self._attempted_without_session = False
        self._restore_state = RestoreState.idle
        self._op_id = 0

        self._session: Optional[Session] = None
        self._profile: Optional[AuthProfile] = None
        self._role: Optional[Role] = self._load_cached_role()
        self._status = AuthStatus.idle
        self._last_error: Optional[AuthFailure] = None
        self._auth_unsub: Optional[Callable[[], None]] = None

    # ---------- read accessors ----------
    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def role(self) -> Optional[Role]:
        return self._role

    @property
    def profile(self) -> Optional[AuthProfile]:
        return self._profile

    @property
    def status(self) -> AuthStatus:
        return self._status

    @property
    def last_error(self) -> Optional[AuthFailure]:
        return self._last_error

    @property
    def restore_state(self) -> RestoreState:
        return self._restore_state

    def access_token(self) -> Optional[str]:
        s = self._session
        return s.access_token if s is not None else None

    def is_authenticated(self) -> bool:
        return self._session is not None and self._status == AuthStatus.authenticated

    def check_state(self) -> SessionCheckState:
        try:
            raw = self.storage.cache.get(CHECK_KEY)
        except StorageError as e:
            self._warn(f"Session check flag unreadable: {e}")
            return SessionCheckState.not_checked
        try:
            return SessionCheckState(raw) if raw else SessionCheckState.not_checked
        except ValueError:
            return SessionCheckState.not_checked

    def wait_until_checked(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no restoration is in flight. Returns False on timeout.
        """
        return self._checked.wait(timeout)

    # ---------- restoration ----------
    def restore_session(self) -> Optional[Session]:
        """
        Try to re-establish a session without user interaction.

        Never raises. Returns the session, or None when there is none, when a
        previous attempt already settled without one, or when another
        restoration is in progress (use wait_until_checked() to observe it).
        """
        if self.check_state() == SessionCheckState.checked_absent:
            return None

        with self._lock:
            if self._attempted_without_session:
                return None
            if self._restoring:
                return None
            if self._session is not None:
                return self._session
            self._restoring = True
            self._restore_state = RestoreState.checking
            self._checked.clear()
            self._op_id += 1
            op = self._op_id
            self._status = AuthStatus.loading
            self._last_error = None

        try:
            return self._restore(op)
        finally:
            with self._lock:
                self._restoring = False
            self._checked.set()

    def _restore(self, op: int) -> Optional[Session]:
        try:
            stored = self._load_stored()
            if stored is not None and stored.is_usable(skew_ms=self.skew_ms):
                try:
                    session = self._with_timeout(lambda: self.provider.set_session(stored.access_token, stored.refresh_token))
                except Exception as e:  # noqa: BLE001
                    self._warn(f"Stored session could not be re-established: {_failure_from(e).message}")
                    session = None
                if session is not None:
                    self._adopt(session, op)
                    self._audit("session.restored", {"source": "stored", "user_id": session.user_id})
                    return session
            elif stored is not None:
                self._info("Stored session expired; checking provider for a live session.")

            try:
                live = self._with_timeout(self.provider.get_session)
            except Exception as e:  # noqa: BLE001
                self._settle_absent(op, _failure_from(e))
                return None
            if live is None:
                self._settle_absent(op, None)
                return None
            self._adopt(live, op)
            self._audit("session.restored", {"source": "provider", "user_id": live.user_id})
            return live
        except Exception as e:  # noqa: BLE001
            # fail closed: any unexpected failure resolves to "no session"
            self._settle_absent(op, _failure_from(e))
            return None

    def _with_timeout(self, fn: Callable[[], Any]) -> Any:
        # the provider call is abandoned on timeout, not cancelled
        fut = self._executor.submit(fn)
        try:
            return fut.result(timeout=self.timeout_seconds)
        except FutureTimeout as e:
            raise RequestTimeout("Identity provider did not answer in time.") from e

    def _settle_absent(self, op: int, failure: Optional[AuthFailure]) -> None:
        self._clear_secure()
        with self._lock:
            self._attempted_without_session = True
            self._restore_state = RestoreState.checked_absent
            if op == self._op_id:
                self._session = None
                self._profile = None
                self._status = AuthStatus.unauthenticated
                self._last_error = failure
        self._write_check_flag(SessionCheckState.checked_absent)
        if failure is not None:
            self._warn(f"Session restore failed ({failure.kind.value}): {failure.message}")
        self._audit("session.absent", {"reason": failure.kind.value if failure else "none"})

    # ---------- explicit actions ----------
    def apply_session(self, session: Optional[Session]) -> None:
        """
        Adopt a session obtained by sign-in / sign-up / exchange / deep link.

        Re-arms restoration: the attempted flag and the persisted check flag are reset.
        """
        with self._lock:
            self._op_id += 1
            op = self._op_id
            self._attempted_without_session = False
            self._status = AuthStatus.loading if session is not None else AuthStatus.unauthenticated
            self._last_error = None

        if session is None:
            self._clear_secure()
            with self._lock:
                if op == self._op_id:
                    self._session = None
                    self._profile = None
                    self._role = None
                    self._restore_state = RestoreState.idle
            self._delete_cache(ROLE_KEY)
            return

        self._delete_cache(CHECK_KEY)
        try:
            self._adopt(session, op)
        except StorageError as e:
            with self._lock:
                if op == self._op_id:
                    self._status = AuthStatus.unauthenticated
                    self._last_error = _failure_from(e)
            raise
        self._audit("session.applied", {"user_id": session.user_id})

    def _adopt(self, session: Session, op: int) -> None:
        self.storage.secure.set(SECURE_KEY, StoredSession.from_session(session).to_record())
        profile, lookup_failed = self._resolve_profile(session)
        with self._lock:
            if op != self._op_id:
                return
            self._session = session
            self._profile = profile
            if profile is not None:
                self._role = profile.role
            elif not lookup_failed:
                self._role = None
            role = self._role
            self._status = AuthStatus.authenticated
            self._last_error = None
            self._restore_state = RestoreState.checked_present
        self._write_cache(ROLE_KEY, role.value if role else None)

    def _resolve_profile(self, session: Session):
        """
        Metadata first, then the profiles table. Returns (profile, lookup_failed).
        """
        profile = profile_from_metadata(session.user_metadata)
        if profile is not None:
            return profile, False
        try:
            row = self.provider.fetch_profile(session.user_id, session.access_token)
        except Exception as e:  # noqa: BLE001
            self._warn(f"Profile lookup failed; keeping cached role: {e}")
            return None, True
        if not row:
            return None, False
        role = parse_role(row.get("role"))
        if role is None:
            return None, False
        return AuthProfile(role=role, full_name=row.get("full_name"), phone=row.get("phone")), False

    def refresh_profile(self, user_id: str) -> None:
        with self._lock:
            self._op_id += 1
            op = self._op_id
            current = self._session
        if current is None or current.user_id != user_id:
            return
        profile, lookup_failed = self._resolve_profile(current)
        with self._lock:
            if op != self._op_id:
                return
            self._profile = profile
            if profile is not None or not lookup_failed:
                self._role = profile.role if profile else None
            role = self._role
        self._write_cache(ROLE_KEY, role.value if role else None)

    def set_role(self, role: Any) -> None:
        parsed = parse_role(role) if role is not None else None
        with self._lock:
            self._role = parsed
            if parsed is None:
                self._profile = None
            elif self._profile is not None:
                self._profile = self._profile.model_copy(update={"role": parsed})
            else:
                self._profile = AuthProfile(role=parsed)
        self._write_cache(ROLE_KEY, parsed.value if parsed else None)

    def sign_out(self) -> None:
        with self._lock:
            self._op_id += 1
        try:
            self.provider.sign_out()
        except Exception as e:  # noqa: BLE001
            self._warn(f"Provider sign-out failed (ignored): {e}")
        self._clear_secure()
        with self._lock:
            # unconditional: a SIGNED_OUT event emitted by the provider may have bumped _op_id
            self._op_id += 1
            self._session = None
            self._profile = None
            self._role = None
            self._status = AuthStatus.unauthenticated
            self._last_error = None
            self._attempted_without_session = True
            self._restore_state = RestoreState.checked_absent
        self._delete_cache(ROLE_KEY)
        self._write_check_flag(SessionCheckState.checked_absent)
        self._audit("session.signed_out", {})

    def reset_session_check(self) -> None:
        """
        Explicitly allow one more restoration (e.g. after login).
        """
        with self._lock:
            self._attempted_without_session = False
            self._restore_state = RestoreState.idle
            if self._session is None:
                self._status = AuthStatus.idle
            self._last_error = None
        self._delete_cache(CHECK_KEY)

    # ---------- provider events ----------
    def start_auth_listener(self) -> Callable[[], None]:
        """
        Follow provider auth-state changes. Only one subscription is kept.
        """
        self.stop_auth_listener()
        unsub = self.provider.on_auth_state_change(self._on_auth_event)
        self._auth_unsub = unsub
        return self.stop_auth_listener

    def stop_auth_listener(self) -> None:
        unsub, self._auth_unsub = self._auth_unsub, None
        if unsub is not None:
            try:
                unsub()
            except Exception as e:  # noqa: BLE001
                self._warn(f"Auth listener unsubscribe failed: {e}")

    def _on_auth_event(self, event: AuthEvent, session: Optional[Session]) -> None:
        if event == AuthEvent.SIGNED_OUT:
            if self._session is None:
                return
            with self._lock:
                self._op_id += 1
                op = self._op_id
            self._clear_secure()
            with self._lock:
                if op == self._op_id:
                    self._session = None
                    self._profile = None
                    self._role = None
                    self._status = AuthStatus.unauthenticated
            self._delete_cache(ROLE_KEY)
            return

        # session-less events (e.g. INITIAL_SESSION with nothing) never invalidate state
        if session is None:
            return
        # a provider call that restoration abandoned on timeout may still finish and
        # emit here; restoration has already settled, so its result is dropped
        if threading.current_thread().name.startswith(PROVIDER_THREAD_PREFIX):
            self._info(f"Ignoring late {event} from an abandoned restore call.")
            return
        # restoration applies its own result
        if self._restoring:
            return
        current = self._session
        if current is not None and current.access_token == session.access_token:
            return

        if event == AuthEvent.TOKEN_REFRESHED and current is not None and current.user_id == session.user_id:
            with self._lock:
                self._op_id += 1
                op = self._op_id
            try:
                self.storage.secure.set(SECURE_KEY, StoredSession.from_session(session).to_record())
            except StorageError as e:
                self._warn(f"Refreshed tokens not persisted: {e}")
            with self._lock:
                if op == self._op_id:
                    self._session = session
                    self._status = AuthStatus.authenticated
                    self._last_error = None
            return

        try:
            self.apply_session(session)
        except StorageError as e:
            self._warn(f"Session from provider event {event.value} not applied: {e}")

    def shutdown(self) -> None:
        self.stop_auth_listener()
        self._executor.shutdown(wait=False)

    # ---------- storage helpers ----------
    def _load_stored(self) -> Optional[StoredSession]:
        try:
            raw = self.storage.secure.get(SECURE_KEY)
        except StorageError as e:
            self._warn(f"Secure storage unreadable: {e}")
            return None
        if not raw:
            return None
        try:
            return StoredSession.model_validate(raw)
        except ValidationError:
            self._warn("Stored session record malformed; discarding.")
            self._clear_secure()
            return None

    def _clear_secure(self) -> None:
        try:
            self.storage.secure.delete(SECURE_KEY)
        except StorageError as e:
            self._warn(f"Secure storage clear failed: {e}")

    def _load_cached_role(self) -> Optional[Role]:
        try:
            return parse_role(self.storage.cache.get(ROLE_KEY))
        except StorageError as e:
            self._warn(f"Cached role unreadable: {e}")
            return None

    def _write_check_flag(self, state: SessionCheckState) -> None:
        self._write_cache(CHECK_KEY, state.value)

    def _write_cache(self, key: str, value: Any) -> None:
        try:
            if value is None:
                self.storage.cache.delete(key)
            else:
                self.storage.cache.set(key, value)
        except StorageError as e:
            self._warn(f"Cache write failed for {key!r}: {e}")

    def _delete_cache(self, key: str) -> None:
        self._write_cache(key, None)

    # ---------- logging ----------
    def _info(self, msg: str) -> None:
        if self.logger:
            self.logger.info(msg)

    def _warn(self, msg: str) -> None:
        if self.logger:
            self.logger.warning(msg)

    def _audit(self, event_type: str, details: Dict[str, Any]) -> None:
        if self.event_logger is None:
            return
        try:
            self.event_logger.log("session", event_type, details)
        except OSError as e:
            self._warn(f"Session audit write failed: {e}")
