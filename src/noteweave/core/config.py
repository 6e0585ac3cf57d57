"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), REDIS_HOST (redis), REDIS_PORT (6379),
        LOG_LEVEL (INFO), OPENAI_API_KEY (mock mode when unset),
        EMBEDDING_* tuning knobs, search and related-notes tuning knobs.
    """

    PROJECT_NAME: str = "Noteweave"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str

    # Redis (optional: embedding job queue)
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379

    # Logging
    LOG_LEVEL: str = "INFO"

    # Embedding provider
    OPENAI_API_KEY: str | None = None
    EMBEDDING_PROVIDER: Literal["openai", "local", "mock"] = "openai"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    LOCAL_EMBEDDING_MODEL: str = "all-MiniLM-L6-v2"
    EMBEDDING_DIMENSION: int = 1536
    EMBEDDING_MAX_CHARS: int = 4000
    EMBEDDING_BATCH_SIZE: int = 128

    # Embedding lifecycle
    EMBEDDING_MAX_RETRIES: int = 3
    EMBEDDING_RETRY_BASE_DELAY: float = 1.0  # 1s, 2s, 4s
    EMBEDDING_BATCH_DELAY: float = 0.1
    EMBEDDING_DISPATCH: Literal["background", "redis"] = "background"
    EMBEDDING_QUEUE_KEY: str = "noteweave:embedding-jobs"

    # Retrieval
    SEARCH_OVERFETCH_FACTOR: int = 2
    DEFAULT_SEMANTIC_WEIGHT: float = 0.6
    RELATED_MIN_CONTENT_LENGTH: int = 50
    RELATED_PREVIEW_LENGTH: int = 150

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async PostgreSQL connection string using asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def REDIS_URL(self) -> str:
        """Redis connection string."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()  # type: ignore[call-arg]


settings = get_settings()
