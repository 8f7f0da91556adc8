"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TaskFlow happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret_key -> JWT_SECRET_KEY).

  @model_validator(mode="after"): Cross-field validation of the two JWT
      secrets. Dev mode generates them with a warning, production mode refuses
      to start without them.

Security notes:
  Secrets shorter than 32 chars are rejected outright. HS256 signing relies on
  key entropy -- a short key weakens every token issued with it.

  The access and refresh secrets must differ. A leaked refresh secret must not
  be able to mint access tokens, and vice versa.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or tasks/.
"""

import logging
import secrets
from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskflow.config")


def now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = "sqlite:///taskflow.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret_key: str = ""
    jwt_refresh_secret_key: str = ""

    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 3600

    # None means "secure outside debug mode".
    secure_cookies: Optional[bool] = None

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    # Empty = in-process MemoryRateLimiter. Any `limits` storage URI
    # (redis://, memcached://, memory://) selects StorageRateLimiter.
    rate_limit_storage_uri: str = ""
    auth_rate_limit: str = "5/minute"
    api_rate_limit: str = "100/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def cookies_secure(self) -> bool:
        if self.secure_cookies is None:
            return not self.debug
        return self.secure_cookies

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_keys(self) -> "Settings":
        """Enforce the JWT secret policy.

        Dev mode (DEBUG=true): auto-generate random keys with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if either
            key is missing.

        Both modes: reject keys shorter than 32 characters and reject a
            refresh key equal to the access key.
        """
        for field_name in ("jwt_secret_key", "jwt_refresh_secret_key"):
            if getattr(self, field_name):
                continue
            if not self.debug:
                raise ValueError(
                    f"{field_name.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            setattr(self, field_name, secrets.token_hex(32))
            logger.warning(
                "WARNING: Using auto-generated %s. Sessions will not persist across restarts.",
                field_name.upper(),
            )
        if len(self.jwt_secret_key) < 32 or len(self.jwt_refresh_secret_key) < 32:
            raise ValueError("JWT secret keys must be at least 32 characters.")
        if self.jwt_secret_key == self.jwt_refresh_secret_key:
            raise ValueError("JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must differ.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
