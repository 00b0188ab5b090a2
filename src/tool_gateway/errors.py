"""
Error types for the tool gateway.

Every GatewayError carries the HTTP status the REST surface answers with and
optional structured details (e.g. argument validation issues).
"""

from typing import Any


class GatewayError(Exception):
    """Base exception for gateway failures."""

    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {'error': self.message}
        if self.details is not None:
            body['details'] = self.details
        return body


class AuthenticationError(GatewayError):
    """Missing, unknown, disabled or expired API key."""

    status_code = 401


class AccessDeniedError(GatewayError):
    """Authenticated caller may not touch the requested resource."""

    status_code = 403


class ToolNotEnabledError(AccessDeniedError):
    """Tool is not in the caller's enabled_tools."""

    pass


class UnknownToolError(GatewayError):
    """Tool is enabled for the caller but missing from the registry."""

    status_code = 404


class ToolArgumentError(GatewayError):
    """Arguments failed the tool's schema or required-field checks."""

    status_code = 400


class ToolExecutionError(GatewayError):
    """The backing unit failed after validation."""

    status_code = 500
