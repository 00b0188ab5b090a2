"""
External service clients for the communications orchestrator.
"""

from .openai_client import OpenAIClient, ToolCall, ToolCompletion
from .postgres_client import PostgresClient

__all__ = [
    'OpenAIClient',
    'PostgresClient',
    'ToolCall',
    'ToolCompletion',
]
