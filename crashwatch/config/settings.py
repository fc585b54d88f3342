"""
Crashwatch Settings

Process-level configuration loaded from environment variables (prefix
``CRASHWATCH_``) or a ``.env`` file using pydantic-settings.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrashwatchSettings(BaseSettings):
    """
    Runtime settings.

    The risk model itself lives in a YAML document; these settings only
    say where to find it and how to log.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CRASHWATCH_",
        case_sensitive=False,
        extra="ignore",
    )

    RISK_MODEL_PATH: Optional[str] = Field(
        default=None,
        description="Path to a risk model YAML document. Uses the packaged model when unset.",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level.",
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit JSON structured logs instead of console format.",
    )
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment name attached to structured logs.",
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("RISK_MODEL_PATH", mode="before")
    @classmethod
    def blank_path_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


@lru_cache()
def get_settings() -> CrashwatchSettings:
    """
    Get cached settings instance.

    Uses lru_cache so settings are read once per process.

    Returns:
        CrashwatchSettings instance with values from environment.
    """
    return CrashwatchSettings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing or when environment variables change.
    """
    get_settings.cache_clear()
