"""
core/config.py -- TokenGate settings, read once from the environment.

Every environment variable the service understands is declared on Settings
below. Nothing else reads os.environ; callers use get_settings().

How it fits together:
  get_settings() is cached with lru_cache, so the process builds one
      Settings instance and FastAPI dependencies share it.

  Settings is a pydantic-settings BaseSettings: each field maps to the
      upper-cased env var (token_ttl -> TOKEN_TTL), an optional .env file is
      honoured, and values are coerced and validated on load.

  The API lifespan passes the signing secret, token TTL, bcrypt cost and
      seed accounts into AccountStore / TokenService / PasswordHasher.
      auth/ never calls get_settings().

Security notes:
  [M6] A SECRET_KEY under 32 characters is refused. The HMAC-SHA256
       signature is only as strong as the key.

  [M7] Without DEBUG, a missing SECRET_KEY stops startup. No default key
       ships with the code.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

import logging
import re
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'tokengate_accounts.db'}"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int) -> int:
    """Convert a duration string ("1h", "30m", "3600s", "1d", "900") to seconds.

    A bare integer is read as seconds. Zero and negative durations are
    rejected -- a token that is born expired is a configuration mistake.
    """
    if isinstance(value, int):
        seconds = value
    else:
        match = _DURATION_RE.match(value)
        if match is None:
            raise ValueError(f"Invalid duration {value!r}. Use forms like '1h', '30m', '3600s' or '1d'.")
        seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2).lower()]
    if seconds <= 0:
        raise ValueError("Duration must be greater than zero.")
    return seconds


class SeedAccount(BaseModel):
    """One well-known account created at startup if it does not exist yet."""

    username: str = Field(min_length=3)
    password: str = Field(min_length=6, max_length=72)
    role: Literal["user", "admin"] = "user"


# Demo accounts seeded only in DEBUG mode when SEED_ACCOUNTS is not set.
_DEBUG_SEED_ACCOUNTS = (
    SeedAccount(username="testuser", password="test123", role="user"),
    SeedAccount(username="admin", password="admin123", role="admin"),
)


class Settings(BaseSettings):
    """TokenGate configuration.

    Every field has a default, so tests can build Settings(_env_file=None)
    with only the overrides they care about. List fields (CORS_ORIGINS,
    ALLOWED_HOSTS, SEED_ACCOUNTS) are read as JSON.
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
    log_level: str = "INFO"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Tokens and passwords
    # ------------------------------------------------------------------

    token_ttl: str = "1h"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    seed_accounts: list[SeedAccount] = Field(default_factory=list)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    host: str = "0.0.0.0"  # nosec B104 -- bind address is operator-configurable
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    allowed_hosts: list[str] = Field(default_factory=lambda: ["*"])
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_ttl")
    @classmethod
    def validate_token_ttl(cls, value: str) -> str:
        """Reject unparseable TTL strings at startup rather than at first login."""
        parse_duration(value)
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def token_ttl_seconds(self) -> int:
        return parse_duration(self.token_ttl)

    def effective_seed_accounts(self) -> list[SeedAccount]:
        """Return the accounts to bootstrap at startup.

        Explicit SEED_ACCOUNTS always win. Without them, DEBUG mode seeds the
        two demo accounts and production mode seeds nothing.
        """
        if self.seed_accounts:
            return list(self.seed_accounts)
        if self.debug:
            return list(_DEBUG_SEED_ACCOUNTS)
        return []


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call.

    Tests that change environment variables must call
    get_settings.cache_clear() before and after.
    """
    return Settings()
