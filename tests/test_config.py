"""Unit tests for core/config.py -- JWT secret policy and derived settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

ACCESS_SECRET = "a" * 32
REFRESH_SECRET = "b" * 32


class TestSecretPolicy:
    def test_debug_generates_distinct_secrets(self) -> None:
        settings = Settings(debug=True, jwt_secret_key="", jwt_refresh_secret_key="")
        assert len(settings.jwt_secret_key) >= 32
        assert len(settings.jwt_refresh_secret_key) >= 32
        assert settings.jwt_secret_key != settings.jwt_refresh_secret_key

    def test_production_requires_secrets(self) -> None:
        with pytest.raises(ValidationError, match="JWT_SECRET_KEY is required"):
            Settings(debug=False, jwt_secret_key="", jwt_refresh_secret_key=REFRESH_SECRET)

    def test_production_accepts_configured_secrets(self) -> None:
        settings = Settings(debug=False, jwt_secret_key=ACCESS_SECRET, jwt_refresh_secret_key=REFRESH_SECRET)
        assert settings.jwt_secret_key == ACCESS_SECRET

    def test_short_secret_rejected(self) -> None:
        with pytest.raises(ValidationError, match="at least 32"):
            Settings(debug=True, jwt_secret_key="short", jwt_refresh_secret_key=REFRESH_SECRET)

    def test_identical_secrets_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must differ"):
            Settings(debug=True, jwt_secret_key=ACCESS_SECRET, jwt_refresh_secret_key=ACCESS_SECRET)


class TestDerived:
    def test_default_lifetimes(self) -> None:
        settings = Settings(debug=True)
        assert settings.access_token_expire_seconds == 15 * 60
        assert settings.refresh_token_expire_seconds == 7 * 24 * 3600

    def test_cookies_secure_follows_debug(self) -> None:
        assert Settings(debug=True).cookies_secure is False
        prod = Settings(debug=False, jwt_secret_key=ACCESS_SECRET, jwt_refresh_secret_key=REFRESH_SECRET)
        assert prod.cookies_secure is True

    def test_cookies_secure_override(self) -> None:
        assert Settings(debug=True, secure_cookies=True).cookies_secure is True
