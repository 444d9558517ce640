"""Common error types and helpers for API responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping


@dataclass(slots=True)
class AppError(Exception):
    """Base application error with a JSON friendly payload."""

    message: str
    code: str = "error"
    status_code: int = 400
    details: Mapping[str, Any] | None = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Mapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details or {}),
        }
        return payload


@dataclass(slots=True)
class ValidationAppError(AppError):
    """Error raised for invalid user input."""

    code: str = "validation_error"
    status_code: int = 400


@dataclass(slots=True)
class ConflictAppError(AppError):
    """Error raised when the requested action clashes with work in progress."""

    code: str = "conflict"
    status_code: int = 409


@dataclass(slots=True)
class UnavailableAppError(AppError):
    """Error raised when an optional runtime is not installed."""

    code: str = "unavailable"
    status_code: int = 503


@dataclass(slots=True)
class InternalAppError(AppError):
    """Generic internal error wrapper to avoid leaking implementation details."""

    code: str = "internal_error"
    status_code: int = 500


def ensure_app_error(error: AppError | Exception, *, fallback_code: str) -> AppError:
    """Coerce arbitrary exceptions into :class:`AppError` instances."""

    if isinstance(error, AppError):
        return error
    return InternalAppError(code=fallback_code, message=str(error))


__all__ = [
    "AppError",
    "ValidationAppError",
    "ConflictAppError",
    "UnavailableAppError",
    "InternalAppError",
    "ensure_app_error",
]
