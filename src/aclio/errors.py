# src/aclio/errors.py

"""
Exception hierarchy and user-facing error classification.

Services raise the specific AclioError subclasses; outer layers (console, HTTP
backend) use AppError.from_exception() to turn anything into a title/message
pair and decide whether a retry makes sense.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class AclioError(Exception):
    """Base class for all application errors."""


class ValidationError(AclioError):
    pass


class NotFoundError(AclioError):
    pass


class PremiumRequiredError(AclioError):
    def __init__(self, feature: str) -> None:
        super().__init__(f"Premium required for {feature}")
        self.feature = feature


class LLMError(AclioError):
    pass


class LLMNotConfiguredError(LLMError):
    pass


class LLMRateLimitedError(LLMError):
    pass


class LLMConnectionError(LLMError):
    pass


class LLMResponseError(LLMError):
    """The model answered, but not in the shape we asked for."""


class MigrationError(AclioError):
    pass


class MigrationFailedError(MigrationError):
    def __init__(self, version: int, reason: str) -> None:
        super().__init__(f"Migration to version {version} failed: {reason}")
        self.version = version
        self.reason = reason


class DataCorruptedError(MigrationError):
    def __init__(self, message: str = "Data is corrupted and cannot be migrated") -> None:
        super().__init__(message)


class ErrorKind(StrEnum):
    NETWORK = "network"
    SERVER = "server"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


_TITLES = {
    ErrorKind.NETWORK: "Connection Error",
    ErrorKind.SERVER: "Server Error",
    ErrorKind.VALIDATION: "Invalid Input",
    ErrorKind.TIMEOUT: "Request Timeout",
    ErrorKind.RATE_LIMITED: "Slow Down",
    ErrorKind.UNAUTHORIZED: "Session Expired",
    ErrorKind.UNKNOWN: "Error",
}

_DEFAULT_MESSAGES = {
    ErrorKind.NETWORK: "Unable to connect to the server. Please check your internet connection and try again.",
    ErrorKind.TIMEOUT: "The request took too long. Please try again.",
    ErrorKind.RATE_LIMITED: "You're making too many requests. Please wait a moment and try again.",
    ErrorKind.UNAUTHORIZED: "Your session has expired. Please restart the app.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}

_RETRYABLE = {ErrorKind.NETWORK, ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED, ErrorKind.SERVER}


@dataclass(frozen=True, slots=True)
class AppError:
    kind: ErrorKind
    message: str

    @property
    def title(self) -> str:
        return _TITLES[self.kind]

    @property
    def is_retryable(self) -> bool:
        return self.kind in _RETRYABLE

    @classmethod
    def of(cls, kind: ErrorKind, message: str | None = None) -> AppError:
        return cls(kind=kind, message=message or _DEFAULT_MESSAGES.get(kind, ""))

    @classmethod
    def from_server_message(cls, message: str) -> AppError:
        low = message.lower()
        if "too many requests" in low or "rate limit" in low:
            return cls.of(ErrorKind.RATE_LIMITED)
        return cls.of(ErrorKind.SERVER, message)

    @classmethod
    def from_exception(cls, exc: BaseException) -> AppError:
        if isinstance(exc, ValidationError):
            return cls.of(ErrorKind.VALIDATION, str(exc))
        if isinstance(exc, LLMRateLimitedError):
            return cls.of(ErrorKind.RATE_LIMITED)
        if isinstance(exc, LLMConnectionError | ConnectionError):
            return cls.of(ErrorKind.NETWORK)
        if isinstance(exc, TimeoutError):
            return cls.of(ErrorKind.TIMEOUT)
        if isinstance(exc, PermissionError):
            return cls.of(ErrorKind.UNAUTHORIZED)
        if isinstance(exc, LLMError):
            return cls.from_server_message(str(exc) or "AI service error")
        return cls.of(ErrorKind.UNKNOWN, str(exc) or None)
