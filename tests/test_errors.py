"""Unit tests for core/errors.py -- kind tags, status codes and exposure policy."""

from __future__ import annotations

import pytest

from core.errors import (
    GENERIC_ERROR_MESSAGE,
    AppError,
    AuthenticationError,
    ConflictError,
    ErrorKind,
    InternalError,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
    public_details,
    public_message,
)


@pytest.mark.parametrize(
    "error_cls, kind, status",
    [
        (ValidationError, ErrorKind.VALIDATION, 400),
        (AuthenticationError, ErrorKind.AUTHENTICATION, 401),
        (NotFoundError, ErrorKind.NOT_FOUND, 404),
        (ConflictError, ErrorKind.CONFLICT, 409),
        (InternalError, ErrorKind.INTERNAL, 500),
    ],
)
def test_kind_and_status(error_cls: type[AppError], kind: ErrorKind, status: int) -> None:
    exc = error_cls("boom")
    assert exc.kind is kind
    assert exc.status_code == status
    assert isinstance(exc, AppError)


def test_rate_limit_carries_reset() -> None:
    exc = RateLimitExceeded(1234.5, retry_after=30)
    assert exc.status_code == 429
    assert exc.reset_at == 1234.5
    assert exc.retry_after == 30
    assert exc.message


class TestExposure:
    def test_exposed_message_shown_in_production(self) -> None:
        assert public_message(AuthenticationError("Invalid email or password"), debug=False) == "Invalid email or password"

    def test_internal_message_hidden_in_production(self) -> None:
        assert public_message(InternalError("db exploded at 0xdead"), debug=False) == GENERIC_ERROR_MESSAGE

    def test_internal_message_shown_in_debug(self) -> None:
        assert public_message(InternalError("db exploded"), debug=True) == "db exploded"

    def test_validation_details_always_public(self) -> None:
        details = [{"field": "title", "message": "too short"}]
        assert public_details(ValidationError("Validation failed", details=details), debug=False) == details

    def test_other_details_only_in_debug(self) -> None:
        exc = InternalError("x", details={"query": "SELECT 1"})
        assert public_details(exc, debug=False) is None
        assert public_details(exc, debug=True) == {"query": "SELECT 1"}

    def test_no_details(self) -> None:
        assert public_details(NotFoundError("Task not found"), debug=True) is None
