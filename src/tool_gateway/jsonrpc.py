"""
JSON-RPC 2.0 adapter (MCP streamable HTTP shape).

``initialize`` and ``notifications/initialized`` answer without a key; every
other method authenticates first. Errors always travel in the JSON-RPC body.
"""

from __future__ import annotations

import json
from typing import Any

from comms_orchestrator.logging import get_logger

from .context import SecurityContext
from .errors import (
    AuthenticationError,
    GatewayError,
    ToolArgumentError,
    UnknownToolError,
)
from .service import ToolGateway

logger = get_logger(__name__)

PROTOCOL_VERSION = '2024-11-05'

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


def rpc_result(request_id: Any, result: Any) -> dict[str, Any]:
    return {'jsonrpc': '2.0', 'id': request_id, 'result': result}


def rpc_error(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {'code': code, 'message': message}
    if data is not None:
        error['data'] = data
    return {'jsonrpc': '2.0', 'id': request_id, 'error': error}


def _error_code(exc: GatewayError) -> int:
    if isinstance(exc, UnknownToolError):
        return METHOD_NOT_FOUND
    if isinstance(exc, ToolArgumentError):
        return INVALID_PARAMS
    return INTERNAL_ERROR


async def handle_rpc(
    gateway: ToolGateway,
    message: Any,
    authorization: str | None,
    server_name: str,
    server_version: str,
) -> dict[str, Any]:
    """
    Dispatch one JSON-RPC request.

    Raises:
        AuthenticationError: For authenticated methods called without a valid key
    """
    if not isinstance(message, dict):
        return rpc_error(None, INVALID_PARAMS, 'Request must be a JSON object')
    request_id = message.get('id')
    method = message.get('method')
    params = message.get('params') or {}

    if method == 'initialize':
        return rpc_result(
            request_id,
            {
                'protocolVersion': PROTOCOL_VERSION,
                'capabilities': {'tools': {}},
                'serverInfo': {'name': server_name, 'version': server_version},
            },
        )
    if method == 'notifications/initialized':
        return {}

    auth = await gateway.authenticate(authorization)

    if method == 'tools/list':
        return rpc_result(request_id, {'tools': gateway.catalog(auth, schema_key='inputSchema')})

    if method == 'tools/call':
        if not isinstance(params, dict):
            return rpc_error(request_id, INVALID_PARAMS, 'params must be an object')
        name = params.get('name')
        if not name:
            return rpc_error(request_id, INVALID_PARAMS, 'Missing required field: params.name')
        try:
            result = await gateway.invoke(
                auth,
                name,
                params.get('arguments') or {},
                SecurityContext.from_auth(auth),
            )
        except AuthenticationError:
            raise
        except GatewayError as e:
            logger.warning('gateway.rpc_call_rejected', tool=name, error=e.message)
            return rpc_error(request_id, _error_code(e), e.message, e.details)
        return rpc_result(
            request_id,
            {
                'content': [{'type': 'text', 'text': json.dumps(result, default=str)}],
                'isError': False,
            },
        )

    return rpc_error(request_id, METHOD_NOT_FOUND, f'Method not found: {method or "(missing)"}')
