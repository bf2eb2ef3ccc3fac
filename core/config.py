"""
core/config.py -- Centralized gateway configuration via pydantic-settings.

All environment variable reads for Gatehouse happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or receive a Settings instance from the app factory.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_key -> JWT_KEY, expire_in -> EXPIRE_IN).

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. A missing signing key, an empty credential pair, or a cache TTL
      longer than the token lifetime is a startup failure: the process refuses
      to serve with an undefined secret.

Settings are frozen after validation. Nothing in the gateway mutates them.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or cache/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gatehouse.config")

_SECONDS_PER_DAY = 24 * 60 * 60


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables and .env file.

    The six variables the gateway cannot run without (JWT_KEY, PORT,
    COOKIE_NAME, USERNAME, PASSWORD, EXPIRE_IN) have no usable default.
    Everything else is tuning and has a safe default.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_key: str = ""
    host: str = "0.0.0.0"
    port: int = Field(gt=0, lt=65536)
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    cookie_name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    # Token lifetime in days.
    expire_in: int = Field(gt=0)
    secure_cookies: bool = True

    # "shared_secret" trusts the signature alone. "credential_hash" also
    # embeds a bcrypt hash of the password in every token and re-checks it on
    # verification, so rotating PASSWORD invalidates all outstanding sessions.
    session_mode: Literal["shared_secret", "credential_hash"] = "shared_secret"
    # Cost of each bcrypt hash (2**rounds iterations, about 250 ms at 12). Paid
    # once per login, and once per distinct token hash on /verify; the
    # verifier remembers the outcome for each hash it has checked.
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Verification cache
    # ------------------------------------------------------------------

    cache_ttl_seconds: int = Field(default=300, gt=0)
    cache_max_entries: int = Field(default=100_000, gt=0)
    cache_shards: int = Field(default=16, gt=0)

    @property
    def token_lifetime_seconds(self) -> int:
        return self.expire_in * _SECONDS_PER_DAY

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="before")
    @classmethod
    def generate_dev_key(cls, data):
        """Fill in a throwaway JWT_KEY when running with DEBUG=true.

        Runs before field validation because the model is frozen afterwards.
        Tokens signed with a generated key do not survive a restart, which is
        acceptable for local development only.
        """
        if isinstance(data, dict) and not data.get("jwt_key") and _truthy(data.get("debug")):
            data = {**data, "jwt_key": secrets.token_hex(32)}
            logger.warning("Using auto-generated JWT_KEY. Sessions will not persist across restarts.")
        return data

    @model_validator(mode="after")
    def validate_session_policy(self) -> "Settings":
        """Refuse to start with a missing or short signing key.

        The verification cache must never outlive the shortest token: a cache
        entry is only a shortcut past the signature check, so its TTL has to
        stay below the token lifetime.
        """
        if not self.jwt_key:
            raise ValueError(
                "JWT_KEY is required. Set JWT_KEY in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
        if len(self.jwt_key) < 32:
            raise ValueError("JWT_KEY must be at least 32 characters.")
        if self.cache_ttl_seconds > self.token_lifetime_seconds:
            raise ValueError("CACHE_TTL_SECONDS must not exceed the token lifetime (EXPIRE_IN days).")
        return self


def _truthy(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@lru_cache
def get_settings() -> Settings:
    """Return the gateway Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    A missing required variable raises pydantic.ValidationError here, which
    stops the process before it binds a socket.

    In tests: build Settings(...) directly and pass it to create_app(), or call
    get_settings.cache_clear() after changing the environment.
    """
    return Settings()
