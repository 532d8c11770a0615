"""
Email/password auth flows on top of the identity provider and the backend exchange.

Every successful flow ends in SessionManager.apply_session(); the backend's
exchange response is authoritative for the role.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from movi.core.errors import InvalidInputError, MoviError
from movi.core.session.identity import IdentityProvider
from movi.core.session.manager import SessionManager
from movi.core.session.models import Role, Session, parse_role
from movi.services.models import ExchangeResult
from movi.services.validation import is_valid_email


@dataclass(frozen=True)
class SignUpOutcome:
    requires_confirmation: bool
    message: str = ""


class AuthService:
    def __init__(
        self,
        *,
        provider: IdentityProvider,
        session_manager: SessionManager,
        api,
        redirect_url: str = "movi://auth/callback",
        reset_redirect_url: str = "movi://auth/reset-password",
        logger=None,
    ):
        self.provider = provider
        self.session_manager = session_manager
        self.api = api
        self.redirect_url = redirect_url
        self.reset_redirect_url = reset_redirect_url
        self.logger = logger

    def exchange_token(self, access_token: str, role: Optional[Role] = None, full_name: Optional[str] = None) -> ExchangeResult:
        body: Dict[str, Any] = {"access_token": access_token}
        if role is not None:
            body["role"] = Role(role).value
        if full_name:
            body["full_name"] = full_name
        return ExchangeResult.model_validate(self.api.post("/auth/exchange", json=body))

    def sign_up_with_email(
        self,
        email: str,
        password: str,
        role: Any,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> SignUpOutcome:
        email = (email or "").strip()
        if not is_valid_email(email):
            raise InvalidInputError("Please enter a valid email address.")
        parsed = parse_role(role)
        if parsed is None:
            raise InvalidInputError('Invalid role. Must be "driver" or "business".', role=str(role))

        data: Dict[str, Any] = {"role": parsed.value}
        if full_name:
            data["full_name"] = full_name
        if phone:
            data["phone"] = phone
        result = self.provider.sign_up(email, password, data=data, redirect_to=self.redirect_url)

        if result.requires_confirmation:
            if self.logger:
                self.logger.info("Sign-up pending email confirmation.")
            return SignUpOutcome(requires_confirmation=True, message="Please check your email to confirm your account.")

        exchanged = self.exchange_token(result.session.access_token, parsed, full_name)
        self.session_manager.apply_session(result.session)
        self.session_manager.set_role(exchanged.role)
        return SignUpOutcome(requires_confirmation=False)

    def sign_in_with_email(self, email: str, password: str) -> ExchangeResult:
        # "Email not confirmed" surfaces through IdentityProviderError's message mapping
        session = self.provider.sign_in_with_password((email or "").strip(), password)

        metadata = dict(session.user_metadata)
        try:
            user = self.provider.get_user(session.access_token)
            metadata = dict(user.get("user_metadata") or metadata)
        except MoviError as e:
            if self.logger:
                self.logger.warning(f"Could not load user after sign-in: {e}")

        role = parse_role(metadata.get("role"))
        full_name = metadata.get("full_name") if isinstance(metadata.get("full_name"), str) else None
        exchanged = self.exchange_token(session.access_token, role, full_name)

        self.session_manager.apply_session(session)
        self.session_manager.set_role(exchanged.role)
        return exchanged

    def handle_auth_callback(self, url: str) -> Optional[Session]:
        """
        Deep link movi://auth/callback. Tokens arrive in the fragment or query string.
        """
        tokens = _tokens_from_url(url)
        if tokens is None:
            session = self.provider.get_session()
            if session is not None:
                self.session_manager.apply_session(session)
            return session

        access_token, refresh_token = tokens
        session = self.provider.set_session(access_token, refresh_token)
        metadata = session.user_metadata or {}
        role = parse_role(metadata.get("role")) or Role.business
        full_name = metadata.get("full_name") if isinstance(metadata.get("full_name"), str) else None

        try:
            exchanged = self.exchange_token(session.access_token, role, full_name)
            resolved_role: Any = exchanged.role
        except MoviError as e:
            if self.logger:
                self.logger.warning(f"Exchange after auth callback failed; using local role: {e}")
            resolved_role = role
        self.session_manager.apply_session(session)
        self.session_manager.set_role(resolved_role)
        return session

    def resend_confirmation_email(self, email: str) -> bool:
        self.provider.resend_signup((email or "").strip(), redirect_to=self.redirect_url)
        return True

    def reset_password(self, email: str) -> bool:
        email = (email or "").strip()
        if not is_valid_email(email):
            raise InvalidInputError("Please enter a valid email address.")
        self.provider.reset_password_for_email(email, redirect_to=self.reset_redirect_url)
        return True

    def sign_out(self) -> None:
        self.session_manager.sign_out()


def _tokens_from_url(url: str):
    parts = urlsplit(url or "")
    for raw in (parts.fragment, parts.query):
        if not raw:
            continue
        qs = parse_qs(raw)
        access = (qs.get("access_token") or [""])[0]
        refresh = (qs.get("refresh_token") or [""])[0]
        if access and refresh:
            return access, refresh
    return None
