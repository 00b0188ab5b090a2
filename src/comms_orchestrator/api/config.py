"""Configuration for the comms ingress FastAPI service."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Ingress service settings loaded from environment variables."""

    # Postgres
    DATABASE_URL: str

    # OpenAI
    OPENAI_API_KEY: str

    # Auth for sweep and action endpoints
    WORKER_API_KEY: str


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
