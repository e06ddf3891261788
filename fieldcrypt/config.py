"""Configuration settings for field encryption."""

from typing import Optional
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EncryptionSettings(BaseSettings):
    """Field encryption settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = "fieldcrypt"
    environment: str = "development"

    # Key material: 64 hex characters (32 bytes)
    encryption_key: Optional[str] = Field(default=None, repr=False)

    # Rotation
    key_rotation_days: int = 90

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache()
def get_settings() -> EncryptionSettings:
    """Get cached settings instance."""
    return EncryptionSettings()
