"""Application configuration settings."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.logging import resolve_level


class GoogleSettings(BaseSettings):
    """Google OAuth 2.0 and Cloud Storage endpoints."""

    token_uri: str = Field(default="https://oauth2.googleapis.com/token")
    storage_api_url: str = Field(default="https://storage.googleapis.com/storage/v1")
    storage_upload_url: str = Field(default="https://storage.googleapis.com/upload/storage/v1")

    model_config = SettingsConfigDict(env_prefix="GSDATA_GOOGLE_")


class SyncSettings(BaseSettings):
    """Bucket synchronization tuning."""

    max_workers: int = Field(default=8, ge=1)
    max_attempts: int = Field(default=4, ge=1)
    backoff_base_seconds: float = Field(default=0.5, ge=0)
    backoff_max_seconds: float = Field(default=8.0, ge=0)
    request_timeout_seconds: float = Field(default=120.0, gt=0)
    manifest_name: str = Field(default=".md5sum")

    model_config = SettingsConfigDict(env_prefix="GSDATA_SYNC_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        resolve_level(v)
        return v.strip().upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("console", "json"):
            raise ValueError(f"Log format must be console or json, got {v}")
        return v

    model_config = SettingsConfigDict(env_prefix="GSDATA_LOG_")


class AppSettings(BaseSettings):
    """Main application settings."""

    name: str = Field(default="gsdata")
    version: str = Field(default="0.7.0")

    google: GoogleSettings = GoogleSettings()
    sync: SyncSettings = SyncSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings
