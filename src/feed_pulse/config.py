# ABOUTME: Centralized configuration using Pydantic Settings.
# ABOUTME: Loads database, feed fetching, and logging settings from environment and .env file.

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    db_url: str | None = None  # Full async URL, overrides the db_* parts below
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "feedpulse"
    db_user: str = "feedpulse"
    db_password: SecretStr | None = None
    db_pool_size: int = 5
    db_pool_max_overflow: int = 10

    @property
    def database_url(self) -> str:
        """Build async database connection URL."""
        if self.db_url:
            return self.db_url
        password = self.db_password.get_secret_value() if self.db_password else ""
        return f"postgresql+asyncpg://{self.db_user}:{password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Feeds
    feed_timeout: float = 10.0
    feed_user_agent: str = "feed-pulse"
    feed_accept: str = "application/rss+xml, application/xml;q=0.9, text/xml;q=0.8"
    feed_fetch_attempts: int = 3  # Transport errors only, HTTP status errors are final
    feed_retry_wait_max: float = 10.0

    # Browse
    browse_default_limit: int = 2

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded from environment variables and .env file.
    """
    return Settings()
