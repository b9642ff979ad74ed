"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Default cache settings (seconds)
    cache_default_ttl_seconds: float = 60.0
    cache_enable_swr: bool = False
    cache_swr_window_seconds: Optional[float] = None  # None = same as TTL
    cache_cleanup_interval_seconds: float = 0.0       # 0 = no background sweep
    cache_max_entries: int = 0                        # 0 = unlimited

    # Feature list / summary cache
    features_cache_ttl_seconds: float = 10.0
    features_cache_max_entries: int = 200

    # Global settings cache (invalidated on save)
    global_settings_cache_ttl_seconds: float = 60.0
    global_settings_cache_swr: bool = False

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
