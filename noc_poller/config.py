"""
Configuration for the NOC SNMP poller.

We use pydantic-settings (Pydantic v2) to load settings from:
- environment variables
- a local `.env` file in the project root
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url


class Settings(BaseSettings):
    """
    Process-wide settings.

    Environment variables (with defaults):

    - DATABASE_URL:           SQLAlchemy URL of the record store (required)
    - DATABASE_PASSWORD:      Store credential, merged into DATABASE_URL if set
    - POLL_INTERVAL_MS:       How often to poll, in milliseconds (default: 10000)
    - POLL_CONCURRENCY:       Devices probed at once within a cycle (default: 1)
    - SNMP_PORT:              UDP port for SNMP (default: 161)
    - SNMP_TIMEOUT_SECONDS:   Per-read timeout (default: 5)
    - SNMP_RETRIES:           Per-read retries (default: 1)
    - SNMP_DEFAULT_COMMUNITY: Community used when a device has none ("public")
    - USE_SNMP_STUB:          "1" or "0" to toggle fake SNMP data (default: 0)
    - LOG_LEVEL:              Root log level (default: INFO)
    """

    database_url: str
    database_password: Optional[SecretStr] = None

    poll_interval_ms: int = 10000
    poll_concurrency: int = 1

    snmp_port: int = 161
    snmp_timeout_seconds: float = 5.0
    snmp_retries: int = 1
    snmp_default_community: str = "public"

    use_snmp_stub: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def require_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must not be empty")
        return v.strip()

    @field_validator("poll_interval_ms", "poll_concurrency")
    @classmethod
    def require_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("snmp_retries")
    @classmethod
    def require_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def require_known_log_level(cls, v: str) -> str:
        name = v.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"unknown log level {v!r}")
        return name

    @property
    def store_url(self) -> str:
        """DATABASE_URL with DATABASE_PASSWORD applied, if one was given."""
        if self.database_password is None:
            return self.database_url
        url = make_url(self.database_url).set(
            password=self.database_password.get_secret_value()
        )
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """
    Load settings once per process.

    Raises pydantic.ValidationError when required values are missing.
    """
    return Settings()
