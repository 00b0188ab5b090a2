"""
Tool execution envelope.

Order of checks for one call: tool named, tool enabled for the key (403),
tool known to the registry (404), arguments valid (400), then dispatch with
the caller's SecurityContext. Nothing runs before every check has passed.
"""

from __future__ import annotations

import json
import time
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from comms_orchestrator.logging import get_logger, logging_context

from .auth import ApiKeyAuthenticator
from .context import AuthResult, SecurityContext
from .errors import (
    GatewayError,
    ToolArgumentError,
    ToolExecutionError,
    ToolNotEnabledError,
    UnknownToolError,
)
from .registry import ToolRegistry

logger = get_logger(__name__)


class ExecuteRequest(BaseModel):
    """Body of POST /execute."""

    model_config = ConfigDict(extra='ignore')

    tool: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    project_id: str | None = None
    user_type: str | None = None
    user_id: str | None = None
    contact_id: str | None = None


def _issues(exc: PydanticValidationError) -> list[dict[str, Any]]:
    return json.loads(exc.json(include_url=False))


class ToolGateway:
    """
    Authenticates callers and runs registry tools on their behalf.

    Usage:
        gateway = ToolGateway(registry, authenticator)
        auth = await gateway.authenticate(authorization_header)
        status, body = await gateway.execute(auth, request_body)
    """

    def __init__(self, registry: ToolRegistry, authenticator: ApiKeyAuthenticator):
        self.registry = registry
        self.authenticator = authenticator

    async def authenticate(self, authorization: str | None) -> AuthResult:
        return await self.authenticator.authenticate(authorization)

    def catalog(self, auth: AuthResult, schema_key: str = 'parameters') -> list[dict[str, Any]]:
        return [spec.describe(schema_key) for spec in self.registry.catalog(auth.enabled_tools)]

    async def invoke(
        self,
        auth: AuthResult,
        tool: str | None,
        raw_args: dict[str, Any],
        context: SecurityContext,
    ) -> Any:
        """
        Validate and run one tool.

        Raises:
            ToolArgumentError: No tool named, or arguments invalid
            ToolNotEnabledError: Tool absent from the key's enabled_tools
            UnknownToolError: Tool enabled but not registered
            ToolExecutionError: The backing unit failed unexpectedly
        """
        if not tool:
            raise ToolArgumentError('Missing required field: tool')
        if tool not in auth.enabled_tools:
            raise ToolNotEnabledError(f'Tool not enabled: {tool}')
        spec = self.registry.get(tool)
        if spec is None:
            raise UnknownToolError(f'Unknown tool: {tool}')

        try:
            args = spec.args_model.model_validate(raw_args or {})
        except PydanticValidationError as e:
            raise ToolArgumentError('Invalid tool arguments', details=_issues(e)) from e

        try:
            return await spec.execute(args, context)
        except GatewayError:
            raise
        except Exception as e:
            logger.exception('gateway.tool_failed', tool=tool, error=str(e))
            raise ToolExecutionError(str(e) or type(e).__name__) from e

    async def execute(self, auth: AuthResult, body: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """Run POST /execute and build the response envelope."""
        request_id = str(uuid4())
        t0 = time.monotonic()

        def envelope(status: int, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
            payload['request_id'] = request_id
            payload['duration_ms'] = int((time.monotonic() - t0) * 1000)
            return status, payload

        with logging_context(trace_id=request_id, company_id=auth.company_id):
            try:
                request = ExecuteRequest.model_validate(body)
                context = SecurityContext.from_auth(
                    auth,
                    user_type=request.user_type,
                    user_id=request.user_id,
                    contact_id=request.contact_id,
                    project_id=request.project_id,
                )
            except PydanticValidationError as e:
                return envelope(400, {'ok': False, 'error': 'Invalid request', 'details': _issues(e)})

            try:
                result = await self.invoke(auth, request.tool, request.args, context)
            except GatewayError as e:
                logger.warning(
                    'gateway.execute_rejected',
                    tool=request.tool,
                    status_code=e.status_code,
                    error=e.message,
                )
                return envelope(e.status_code, {'ok': False, **e.to_dict()})

            logger.info('gateway.executed', tool=request.tool)
            return envelope(200, {'ok': True, 'tool': request.tool, 'result': result})
