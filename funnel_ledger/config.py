"""
config.py — funnel_ledger settings.

Usage:
    from funnel_ledger.config import settings
    print(settings.analytics_key)

Values come from the environment or a local .env file.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Storage slots ---
    analytics_key: str = "cronograma_analytics"
    session_key: str = "cronograma_session"

    # --- Durable store ---
    # Any SQLAlchemy URL; the default keeps everything in a local file
    database_url: str = "sqlite:///funnel_analytics.db"

    # --- Session scope ---
    # Empty → in-process scope (session ends with the process)
    redis_url: str = ""
    session_ttl: int = 1800   # 30 minutes, refreshed on every read
    browser_context_id: str = ""

    # --- Application ---
    debug: bool = False
    app_version: str = "0.1.0"


# Module-level singleton — import this throughout the codebase
settings = Settings()
