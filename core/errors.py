"""
core/errors.py -- Domain error taxonomy for TaskFlow.

Every error raised by a workflow carries an explicit ErrorKind tag. The HTTP
boundary (api/main.py) maps the kind to a status code and decides whether the
message may be shown to the client. Nothing matches on message text.

Exposure policy:
  exposed=True   -- the message is part of the public contract and is returned
                    in every mode ("Invalid email or password", ...).
  exposed=False  -- the message is internal. Production returns a generic
                    string; debug mode returns the real message.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    AUTHENTICATION = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal_error"


GENERIC_ERROR_MESSAGE = "An unexpected error occurred."


class AppError(Exception):
    """Base class for errors that the HTTP boundary turns into an envelope."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    exposed: bool = False

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    """Field-level input errors. details is a list of {field, message}."""

    kind = ErrorKind.VALIDATION
    status_code = 400
    exposed = True


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials.

    Messages are generic by construction -- they never say which credential
    field was wrong.
    """

    kind = ErrorKind.AUTHENTICATION
    status_code = 401
    exposed = True


class NotFoundError(AppError):
    """Resource absent -- or present but owned by someone else."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404
    exposed = True


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT
    status_code = 409
    exposed = True


class RateLimitExceeded(AppError):
    """Raised by the rate-limit dependencies.

    reset_at is UTC epoch seconds; retry_after is whole seconds until then.
    """

    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    exposed = True

    def __init__(
        self,
        reset_at: float,
        retry_after: int,
        message: str = "Too many requests. Please try again later.",
    ) -> None:
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after


class InternalError(AppError):
    kind = ErrorKind.INTERNAL
    status_code = 500
    exposed = False


def public_message(exc: AppError, debug: bool) -> str:
    """Return the message a client may see for exc."""
    if exc.exposed or debug:
        return exc.message
    return GENERIC_ERROR_MESSAGE


def public_details(exc: AppError, debug: bool) -> Optional[Any]:
    """Validation details are always public; other details only in debug mode."""
    if exc.details is None:
        return None
    if exc.kind is ErrorKind.VALIDATION or debug:
        return exc.details
    return None
