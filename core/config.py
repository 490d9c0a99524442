"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Gatehouse happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      settings object is read-only configuration; the components built from
      it (rule set, hasher, stores) are constructed explicitly in the
      application lifespan and passed into each other, never looked up.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. hash_cost -> HASH_COST). List fields are read as JSON
      (ACCESS_RULES='[["/notices", "PUBLIC"]]').

Security notes:
  DEFAULT_POLICY=ALLOW is accepted but logged as a warning on every startup.
  It turns every route missing from ACCESS_RULES into a public route.

  HASH_COST below 10 is accepted (tests need fast hashing) but logged.

  SECRET_KEY shorter than 32 chars is rejected outright. In production mode
  (DEBUG not set), a missing SECRET_KEY is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatehouse.config")

DEFAULT_ORACLE_URL = "https://api.pwnedpasswords.com"

# Tutorial routes. Order matters: first match wins.
DEFAULT_ACCESS_RULES: list[tuple[str, str]] = [
    ("/myAccount", "AUTHENTICATED"),
    ("/myBalance", "AUTHENTICATED"),
    ("/myLoans", "AUTHENTICATED"),
    ("/myCards", "AUTHENTICATED"),
    ("/me", "AUTHENTICATED"),
    ("/notices", "PUBLIC"),
    ("/contact", "PUBLIC"),
    ("/register", "PUBLIC"),
    ("/login", "PUBLIC"),
    ("/logout", "PUBLIC"),
    ("/health", "PUBLIC"),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true still required so a
    SECRET_KEY can be generated).
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
    database_url: str = ""  # empty -> auth.store.DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Access decision engine
    # ------------------------------------------------------------------

    default_policy: Literal["DENY", "ALLOW"] = "DENY"
    access_rules: list[tuple[str, str]] = Field(default_factory=lambda: list(DEFAULT_ACCESS_RULES))

    # ------------------------------------------------------------------
    # Credential subsystem
    # ------------------------------------------------------------------

    hash_cost: int = Field(default=12, ge=4, le=31)
    hash_concurrency_cap: int = Field(default=4, ge=1)
    min_password_length: int = Field(default=8, ge=1)
    default_role: str = "user"

    # ------------------------------------------------------------------
    # Breach oracle
    # ------------------------------------------------------------------

    oracle_enabled: bool = True
    oracle_timeout_ms: int = Field(default=2000, gt=0)
    oracle_url: str = DEFAULT_ORACLE_URL
    reject_compromised: bool = True

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    token_expire_seconds: int = 3600
    allowed_hosts: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1", "*.localhost"])
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost", "http://localhost:3000"])
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Dev mode generates a throwaway key; production refuses to start without one."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not survive restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def warn_on_weak_security_defaults(self) -> "Settings":
        if self.default_policy == "ALLOW":
            logger.warning(
                "WARNING: DEFAULT_POLICY=ALLOW -- every path not listed in ACCESS_RULES is publicly reachable."
            )
        if self.hash_cost < 10:
            logger.warning("WARNING: HASH_COST=%d is below the recommended minimum of 10.", self.hash_cost)
        if self.oracle_timeout_ms > 2000:
            logger.warning(
                "ORACLE_TIMEOUT_MS=%d exceeds 2000ms; registrations wait this long on outages.",
                self.oracle_timeout_ms,
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
