from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the repository layer and its web integration.

    This is separate from aggregate_repo.db.config.Settings, which focuses on the database layer.
    """

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name")

    # Caller session
    ADMIN_ROLE: str = Field(
        default="admin",
        description="Role name that marks a caller as admin (bypasses data permission filters).",
    )

    # Bearer tokens
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC secret for access tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, v):
        """Accept lower-case level names from the environment."""
        if v is None:
            return "INFO"
        return str(v).strip().upper() or "INFO"


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.
    """
    return AppSettings()
