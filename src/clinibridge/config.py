"""Application configuration."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", frozen=True, extra="ignore"
    )

    # Database
    database_url: str = "sqlite:///clinibridge.db"
    persist_searches: bool = True

    # API Keys
    anthropic_api_key: str = ""

    # LLM Settings
    llm_model: str = "claude-haiku-4-5-20251001"
    llm_max_tokens: int = 4096

    # Inbound rate limit for /api/search and /api/chat, counted separately
    search_rate_limit: int = 30
    search_rate_window_seconds: int = 3600

    # App Settings
    debug: bool = False
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
