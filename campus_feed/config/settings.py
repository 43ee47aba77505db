"""Application settings using Pydantic Settings.

Values come from environment variables (or a local ``.env`` file); names are
case-insensitive, so ``COMMENT_CACHE_TTL_SECONDS=60`` overrides
``comment_cache_ttl_seconds``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


Environment = Literal["development", "staging", "production", "testing"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Campus feed service configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "campus-feed"
    app_version: str = "0.1.0"
    environment: Environment = "development"

    # Server (used by ``campus-feed`` / ``python -m campus_feed.main``)
    api_host: str = Field(default="127.0.0.1", description="Bind address")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_workers: int = Field(default=1, ge=1)
    api_reload: bool = Field(default=False, description="Reload on code changes")

    # Logging
    log_level: LogLevel = "INFO"
    log_format: Literal["json", "console"] = "console"
    log_include_caller_info: bool = False
    log_dir: str = "logs"
    log_file_enabled: bool = Field(
        default=True, description="Also write rotating JSON files under log_dir"
    )
    log_file_max_bytes: int = 10 * 1024 * 1024
    log_file_backup_count: int = 5
    log_requests: bool = True
    log_exclude_paths: list[str] = Field(
        default=["/health"],
        description="Path prefixes served without request logs",
    )

    # CORS (feed clients call the service from the browser)
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = False
    cors_allow_methods: list[str] = ["GET", "POST"]
    cors_allow_headers: list[str] = ["*"]
    cors_max_age: int = 600

    # Comment threads
    comment_preview_threads: int = Field(
        default=3, ge=1, description="Threads shown on a feed card"
    )
    comment_preview_replies: int = Field(
        default=3, ge=0, description="Newest direct replies kept per previewed thread"
    )
    comment_cache_ttl_seconds: float = Field(
        default=300.0, gt=0, description="Lifetime of cached comment threads"
    )
    admin_display_name: str = Field(
        default="FAITH Administration",
        description="Author name for comments posted as the administration",
    )
    deleted_comment_placeholder: str = Field(
        default="[Comment deleted]",
        description="Content the backend stores for soft-deleted comments",
    )

    @property
    def is_development(self) -> bool:
        """Interactive docs are only served in development."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
