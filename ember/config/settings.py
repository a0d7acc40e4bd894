"""
Configuration settings for the Ember feed aggregator
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; Ember Feed Aggregator; +https://github.com/ember-feed/ember)"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Members
    config_path: str = Field(default="config.yaml")

    # Snapshots
    data_dir: str = Field(default="public/data")
    feed_snapshot_name: str = Field(default="feed.json")
    users_snapshot_name: str = Field(default="users.json")
    cache_ttl_seconds: float = Field(default=600.0, ge=0)

    # Feed fetching
    fetch_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    generate_timeout_seconds: float = Field(default=60.0, gt=0)
    fallback_timeout_seconds: float = Field(default=30.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    dedupe_sources: bool = Field(default=True)

    # Manual refresh
    refresh_api_key: Optional[str] = Field(default=None)

    # Scheduler
    schedule_cron: str = Field(default="0 * * * *")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)

    # Logging
    log_json_path: Optional[str] = Field(default=None)

    @property
    def feed_snapshot_path(self) -> Path:
        return Path(self.data_dir) / self.feed_snapshot_name

    @property
    def users_snapshot_path(self) -> Path:
        return Path(self.data_dir) / self.users_snapshot_name


def get_settings() -> Settings:
    """Get application settings"""
    return Settings()
