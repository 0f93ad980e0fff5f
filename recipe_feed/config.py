"""
Configuration and settings for the recipe feed service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the feed service and daemon."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Relational store (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")
    # Identity the client session is signed in as
    session_user_id: Optional[str] = Field(default=None, env="SESSION_USER_ID")

    # S3-compatible storage for recipe images
    cos_endpoint: Optional[str] = Field(default=None, env="COS_ENDPOINT")
    cos_region: Optional[str] = Field(default=None, env="COS_REGION")
    cos_bucket: Optional[str] = Field(default=None, env="COS_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None, env="STORAGE_PUBLIC_BASE_URL"
    )

    # Notification channels (Redis)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_notification_key: str = Field(
        default="recipe_feed:notifications", env="REDIS_NOTIFICATION_KEY"
    )
    redis_response_key: str = Field(
        default="recipe_feed:responses", env="REDIS_RESPONSE_KEY"
    )

    # Feed polling. Exactly one process should poll: the API by default.
    poll_interval_seconds: float = Field(default=30.0, env="POLL_INTERVAL_SECONDS")
    poll_in_app: bool = Field(default=True, env="POLL_IN_APP")
    # Recipes published this long before startup are still announced
    announce_since_seconds: float = Field(default=0.0, env="ANNOUNCE_SINCE_SECONDS")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
