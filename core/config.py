"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the auth starter happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. The session cookie
  signature relies on key entropy -- a short key weakens it.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure. A random key would silently log every user out on restart.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or users/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authstarter.config")


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    app_title: str = "Auth Starter API"
    app_version: str = "1.0.0"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./authstarter.db"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    api_prefix: str = "/api"
    base_url: str = "http://localhost:8000"
    cors_origins: list[str] = ["http://localhost:3000"]
    body_limit_bytes: int = 5 * 1024 * 1024

    docs_enabled: bool = True
    docs_path: str = "/api/docs"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_cookie_name: str = "session_token"
    session_expire_seconds: int = 7 * 24 * 3600
    verification_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    # Auth provider's own limiter, persisted in the rate_limits table.
    auth_rate_limit_window: int = 15 * 60
    auth_rate_limit_max: int = 20

    # slowapi default limit applied to every route.
    throttle_enabled: bool = True
    throttle_ttl: int = 60
    throttle_limit: int = 100

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def auth_prefix(self) -> str:
        """Path prefix owned by the auth provider's handler."""
        return f"{self.api_prefix.rstrip('/')}/auth"

    @property
    def throttle_rule(self) -> str:
        """slowapi/limits rule string, e.g. '100 per 60 seconds'."""
        return f"{self.throttle_limit} per {self.throttle_ttl} seconds"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
