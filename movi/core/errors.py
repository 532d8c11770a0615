from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from movi.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class MoviError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class ConfigError(MoviError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class StorageError(MoviError):
    def __init__(self, user_message: str = "Local storage error.", **ctx: Any):
        super().__init__("storage_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class InvalidInputError(MoviError):
    def __init__(self, user_message: str = "Invalid input.", **ctx: Any):
        super().__init__("invalid_input", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


# Provider messages rewritten for display.
PROVIDER_MESSAGES: Dict[str, str] = {
    "Invalid login credentials": "Incorrect email or password.",
    "Email not confirmed": "Please confirm your email before signing in.",
    "User already registered": "This email is already registered.",
    "Password should be at least 6 characters": "The password must be at least 6 characters long.",
}


def _friendly_provider_message(message: str) -> str:
    for needle, friendly in PROVIDER_MESSAGES.items():
        if needle in message:
            return friendly
    return message or "Authentication failed."


class IdentityProviderError(MoviError):
    def __init__(self, message: str = "Authentication failed.", *, status_code: Optional[int] = None, **ctx: Any):
        super().__init__(
            "identity_provider_error",
            _friendly_provider_message(message),
            severity=Severity.WARN,
            recoverable=True,
            context=ctx,
        )
        self.provider_message = message
        self.status_code = status_code


# ---- HTTP / backend ----
STATUS_MESSAGES: Dict[int, str] = {
    401: "Your session has expired. Please sign in again.",
    403: "You do not have permission to perform this action.",
    404: "The requested resource was not found.",
    422: "The submitted data is not valid.",
    429: "Too many requests. Please wait a moment.",
    500: "Server error. Please try again later.",
    503: "The service is unavailable. Please try again later.",
}


class ApiError(MoviError):
    """
    Backend rejected the request. Carries the HTTP status and the server's own message.
    """

    def __init__(
        self,
        code: str,
        user_message: str,
        *,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
        details: Any = None,
        severity: Severity = Severity.WARN,
        recoverable: bool = True,
    ):
        super().__init__(code, user_message, severity=severity, recoverable=recoverable, context={"status_code": status_code})
        self.status_code = status_code
        self.server_message = server_message
        self.details = details


class AuthenticationExpired(ApiError):
    def __init__(self, *, server_message: Optional[str] = None, details: Any = None):
        super().__init__(
            "authentication_expired",
            STATUS_MESSAGES[401],
            status_code=401,
            server_message=server_message,
            details=details,
            recoverable=False,
        )


class ValidationRejected(ApiError):
    def __init__(self, status_code: int, *, server_message: Optional[str] = None, details: Any = None):
        super().__init__(
            "validation_rejected",
            STATUS_MESSAGES.get(status_code) or server_message or f"Error {status_code}",
            status_code=status_code,
            server_message=server_message,
            details=details,
            recoverable=False,
        )


class ServerFault(ApiError):
    def __init__(self, status_code: int, *, server_message: Optional[str] = None, details: Any = None):
        super().__init__(
            "server_fault",
            STATUS_MESSAGES.get(status_code) or "Server error. Please try again later.",
            status_code=status_code,
            server_message=server_message,
            details=details,
            severity=Severity.ERROR,
        )


class NetworkError(MoviError):
    """
    The server could not be reached; nothing was rejected.
    """


class NetworkUnreachable(NetworkError):
    def __init__(self, user_message: str = "Could not reach the server. Check your internet connection.", **ctx: Any):
        super().__init__("network_unreachable", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


class RequestTimeout(NetworkError):
    def __init__(self, user_message: str = "The request took too long. Please try again.", **ctx: Any):
        super().__init__("request_timeout", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


def error_message(exc: BaseException) -> str:
    if isinstance(exc, MoviError):
        return exc.user_message
    msg = str(exc)
    if msg:
        return _friendly_provider_message(msg)
    return "An unexpected error occurred. Please try again."


def is_auth_error(exc: BaseException) -> bool:
    return isinstance(exc, ApiError) and exc.status_code in {401, 403}


def is_network_error(exc: BaseException) -> bool:
    return isinstance(exc, NetworkError)
