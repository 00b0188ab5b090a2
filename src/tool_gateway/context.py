"""Security context injected into every tool invocation."""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class AuthResult(BaseModel):
    """Outcome of a successful API key check."""

    key_id: str
    tenant_id: str
    company_id: str | None = None
    org_id: str | None = None
    enabled_tools: list[str] = []


class SecurityContext(BaseModel):
    """
    Caller identity handed to backing units.

    Authoritative over any tenant or company fields a caller places in tool
    arguments.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    company_id: str
    org_id: str | None = None
    user_type: Literal['system', 'admin', 'contact'] = 'system'
    user_id: str | None = None
    contact_id: str | None = None
    project_id: str | None = None

    @classmethod
    def from_auth(
        cls,
        auth: AuthResult,
        user_type: str | None = None,
        user_id: str | None = None,
        contact_id: str | None = None,
        project_id: str | None = None,
    ) -> 'SecurityContext':
        return cls(
            tenant_id=auth.tenant_id,
            company_id=auth.company_id or auth.tenant_id,
            org_id=auth.org_id,
            user_type=user_type or 'system',
            user_id=user_id,
            contact_id=contact_id,
            project_id=project_id,
        )
