"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"

    # Optional analysis window: events older than this, measured back from
    # the newest event in a batch, are left out of detection. 0 (the
    # default) analyzes every event the caller sends.
    analysis_window_days: int = 0

    # Defaults for users who have never saved preferences
    default_min_relevance_threshold: float = 0.6
    default_max_suggestions_per_day: int = 10
    default_max_suggestions_visible: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
