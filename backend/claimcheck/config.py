from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI (claim extraction, search and rewriting collaborator)
    # Default empty string lets the app and tests start without .env;
    # the first collaborator call then fails with CONFIG_ERROR (HTTP 500)
    openai_api_key: str = ""

    # Models per collaborator task
    # Verification needs the strongest model, search/rephrase are lighter
    verification_model: str = "gpt-4o"
    search_model: str = "gpt-4o-mini"
    rephrase_model: str = "gpt-4o-mini"

    # Upper bound on any single collaborator call, so a stalled
    # collaborator cannot wedge a request
    collaborator_timeout_seconds: float = 90.0

    # Input limits (characters)
    max_verify_length: int = 10000
    max_search_length: int = 500
    max_rephrase_length: int = 5000
    max_source_label_length: int = 50

    # How many sources a search response shows (after sorting by quality)
    max_search_sources: int = 5

    # Rankings store
    # Empty = in-memory (volatile, resets on restart)
    # Otherwise an async SQLAlchemy URL, e.g. sqlite+aiosqlite:///./rankings.db
    rankings_database_url: str = ""

    # CORS for the web frontend
    cors_origins: list[str] = ["http://localhost:3000"]

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
