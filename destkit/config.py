"""
Application configuration for destkit.

Settings are read from DESTKIT_* environment variables once per process.
Only the app layer calls get_settings(); the runtime itself takes plain
constructor arguments so it can be used without any environment.
"""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator

from destkit.destination.redact import REDACTED
from destkit.request import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

ENV_PREFIX = "DESTKIT_"


class AppSettings(BaseModel):
    """Application settings model."""

    # Service identity
    service_name: str = "destkit"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Outbound requests
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Default partner request timeout (s)")
    credential_test_timeout: float = Field(default=3.0, gt=0, description="Credential test timeout (s)")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for partner requests")

    # Instrumentation
    redaction_placeholder: str = Field(default=REDACTED, description="Replacement for private settings")

    # Destinations to load at startup (import paths exposing `destination`)
    destination_modules: list[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


def _split_modules(raw: str) -> list[str]:
    return [module.strip() for module in raw.split(",") if module.strip()]


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern; call get_settings.cache_clear()
    after changing the environment.
    """
    return AppSettings(
        # Service
        service_name=os.getenv(f"{ENV_PREFIX}SERVICE_NAME", "destkit"),
        environment=os.getenv(f"{ENV_PREFIX}ENVIRONMENT", "development"),
        debug=os.getenv(f"{ENV_PREFIX}DEBUG", "false").lower() == "true",
        log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
        # Outbound requests
        request_timeout=float(os.getenv(f"{ENV_PREFIX}REQUEST_TIMEOUT", str(DEFAULT_TIMEOUT))),
        credential_test_timeout=float(os.getenv(f"{ENV_PREFIX}CREDENTIAL_TEST_TIMEOUT", "3.0")),
        user_agent=os.getenv(f"{ENV_PREFIX}USER_AGENT", DEFAULT_USER_AGENT),
        # Instrumentation
        redaction_placeholder=os.getenv(f"{ENV_PREFIX}REDACTION_PLACEHOLDER", REDACTED),
        # Destinations
        destination_modules=_split_modules(os.getenv(f"{ENV_PREFIX}DESTINATION_MODULES", "")),
    )
