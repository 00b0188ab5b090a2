"""Configuration for the tool gateway FastAPI service."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables."""

    # Postgres
    DATABASE_URL: str

    # Column names tried, in order, for the key owner's tenant id
    TENANT_COLUMN_VARIANTS: list[str] = ["tenant_id", "company_id"]

    # Knowledge search service used by knowledge_lookup
    KNOWLEDGE_SEARCH_URL: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    SERVER_NAME: str = "comms-tools"
    SERVER_VERSION: str = "0.1.0"


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
