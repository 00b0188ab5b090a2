"""
Tool Gateway

Multi-tenant tool catalog and execution surface: API-key authentication,
a single tool registry, REST and JSON-RPC adapters.
"""

__version__ = '0.1.0'

from .auth import AccessKeyStore, ApiKeyAuthenticator, generate_api_key, hash_key
from .context import AuthResult, SecurityContext
from .errors import (
    AccessDeniedError,
    AuthenticationError,
    GatewayError,
    ToolArgumentError,
    ToolExecutionError,
    ToolNotEnabledError,
    UnknownToolError,
)
from .registry import ToolRegistry, ToolSpec
from .service import ToolGateway

__all__ = [
    '__version__',
    'AccessKeyStore',
    'ApiKeyAuthenticator',
    'generate_api_key',
    'hash_key',
    'AuthResult',
    'SecurityContext',
    'AccessDeniedError',
    'AuthenticationError',
    'GatewayError',
    'ToolArgumentError',
    'ToolExecutionError',
    'ToolNotEnabledError',
    'UnknownToolError',
    'ToolRegistry',
    'ToolSpec',
    'ToolGateway',
]
