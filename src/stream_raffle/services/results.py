"""Discriminated results returned across the admin and display boundary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

GENERIC_INTERNAL_MESSAGE = "An internal error occurred"


class ErrorCode(str, Enum):
    """Typed failure codes surfaced to callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ACTIVE_SESSION_EXISTS = "ACTIVE_SESSION_EXISTS"
    NO_ACTIVE_SESSION = "NO_ACTIVE_SESSION"
    NO_PARTICIPANTS = "NO_PARTICIPANTS"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    DRAW_TIMEOUT = "DRAW_TIMEOUT"
    SUBMISSIONS_CLOSED = "SUBMISSIONS_CLOSED"
    ALREADY_ENTERED = "ALREADY_ENTERED"
    NOT_FOLLOWING = "NOT_FOLLOWING"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    @property
    def retryable(self) -> bool:
        """Return True when the same call may succeed if simply repeated."""
        return self in _RETRYABLE

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_RETRYABLE = frozenset({ErrorCode.ALREADY_PROCESSED, ErrorCode.DRAW_TIMEOUT})

_HTTP_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.ACTIVE_SESSION_EXISTS: 409,
    ErrorCode.NO_ACTIVE_SESSION: 409,
    ErrorCode.NO_PARTICIPANTS: 400,
    ErrorCode.ALREADY_PROCESSED: 409,
    ErrorCode.DRAW_TIMEOUT: 503,
    ErrorCode.SUBMISSIONS_CLOSED: 403,
    ErrorCode.ALREADY_ENTERED: 409,
    ErrorCode.NOT_FOLLOWING: 403,
    ErrorCode.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Success payload or typed failure; never both."""

    ok: bool
    value: T | None = None
    error: ErrorCode | None = None
    message: str | None = None

    @classmethod
    def success(cls, value: T | None = None) -> ServiceResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorCode, message: str | None = None) -> ServiceResult[Any]:
        if error is ErrorCode.INTERNAL_ERROR:
            message = message or GENERIC_INTERNAL_MESSAGE
        return cls(ok=False, error=error, message=message or error.value)

    def unwrap(self) -> T:
        """Return the payload, raising ``RuntimeError`` on a failed result."""
        if not self.ok:
            raise RuntimeError(f"{self.error}: {self.message}")
        return self.value  # type: ignore[return-value]
