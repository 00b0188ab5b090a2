"""
Configuration management for the communications orchestrator.

Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


class Config:
    """Configuration settings loaded from environment."""

    # Decision engine
    OPENAI_API_KEY: str = os.getenv('OPENAI_API_KEY', '')
    AI_PROVIDER: str = os.getenv('AI_PROVIDER', 'openai')
    AI_MODEL: str = os.getenv('AI_MODEL', 'gpt-4o')

    # Relational store
    DATABASE_URL: str = os.getenv('DATABASE_URL', '')

    # Debounce batching (operational parameters, not invariants)
    BATCH_DEBOUNCE_SECONDS: int = int(os.getenv('BATCH_DEBOUNCE_SECONDS', '60'))
    BATCH_MAX_SIZE: int = int(os.getenv('BATCH_MAX_SIZE', '10'))

    # Disambiguation
    MULTI_PROJECT_LIMIT: int = int(os.getenv('MULTI_PROJECT_LIMIT', '100'))

    # Outbound collaborators
    SEND_COMMUNICATION_URL: str = os.getenv('SEND_COMMUNICATION_URL', '')
    KNOWLEDGE_SEARCH_URL: str = os.getenv('KNOWLEDGE_SEARCH_URL', '')
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv('HTTP_TIMEOUT_SECONDS', '30'))

    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_JSON: bool = os.getenv('LOG_JSON', '').lower() in ('1', 'true', 'yes')

    @classmethod
    def validate(cls) -> list[str]:
        """
        Validate that required configuration is present.

        Returns:
            List of missing required configuration keys
        """
        missing = []
        if not cls.OPENAI_API_KEY:
            missing.append('OPENAI_API_KEY')
        if not cls.DATABASE_URL:
            missing.append('DATABASE_URL')
        return missing


# Singleton config instance
config = Config()
