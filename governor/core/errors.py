"""Application-level exception types.

Domain errors raised by the governor and the game/profile services. The HTTP
layer maps each subclass to a status code in
:mod:`governor.core.exception_handlers`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict

RATE_LIMITED_MESSAGE = "Too many requests. Please wait a few seconds and try again."


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    action: str
    retry_after: float
    game_id: str
    user_id: str
    collection: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller's identity is missing or unknown."""


class PermissionAppError(AppError):
    """Raised when an identified caller may not perform the operation."""


class NotFoundAppError(AppError):
    """Raised when a referenced document does not exist."""


class ConflictAppError(AppError):
    """Raised when an operation conflicts with the current document state."""


@dataclass
class RateLimitedAppError(AppError):
    """Raised when an action exceeds its quota and soft-fail is off.

    The message is fixed and meant to be shown to the end user as-is.
    """

    code: str = "rate_limited"
    message: str = RATE_LIMITED_MESSAGE
    details: ErrorDetails | None = None

    @property
    def retry_after(self) -> float | None:
        if not self.details:
            return None
        return self.details.get("retry_after")
