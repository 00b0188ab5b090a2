"""
API key authentication for the tool gateway.

Bearer keys are never stored; lookups go by SHA-256 hex digest against
``mcp_external_access_keys``. Deployments disagree on the name of the tenant
column, so each configured variant is tried in turn; only a missing
relation/column moves on to the next variant, any other database error is
fatal.
"""

from __future__ import annotations

import asyncio
import hashlib
import secrets
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from comms_orchestrator.clients.postgres_client import PostgresClient
from comms_orchestrator.errors import DatabaseError, SchemaMismatchError, wrap_database_error
from comms_orchestrator.logging import get_logger

from .context import AuthResult
from .errors import AuthenticationError

logger = get_logger(__name__)

DEFAULT_TENANT_COLUMNS = ('tenant_id', 'company_id')


def hash_key(key: str) -> str:
    return hashlib.sha256(key.encode('utf-8')).hexdigest()


def generate_api_key() -> tuple[str, str]:
    """Create a random 32-byte hex key and its stored hash."""
    key = secrets.token_hex(32)
    return key, hash_key(key)


def extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError('Missing Authorization header')
    if not authorization.startswith('Bearer '):
        raise AuthenticationError("Invalid Authorization header format. Expected 'Bearer <key>'")
    key = authorization[7:].strip()
    if not key:
        raise AuthenticationError('Empty API key')
    return key


class AccessKeyStore:
    """SQL access to the external access key table."""

    def __init__(
        self,
        postgres_client: PostgresClient,
        tenant_columns: tuple[str, ...] | list[str] = DEFAULT_TENANT_COLUMNS,
    ):
        self.postgres = postgres_client
        self.tenant_columns = tuple(tenant_columns)

    async def _fetch_one(self, sql: str, params: dict[str, Any]) -> dict[str, Any] | None:
        try:
            async with self.postgres.engine.begin() as conn:
                result = await conn.execute(text(sql), params)
                row = result.mappings().first()
        except SQLAlchemyError as e:
            raise wrap_database_error(e, {'statement': sql.split()[0]}) from e
        return dict(row) if row is not None else None

    async def find_by_hash(self, key_hash: str) -> dict[str, Any] | None:
        """
        Look the key up across the tenant column variants.

        Returns:
            Row with a normalised ``tenant_id`` entry, or None when no variant
            has the key

        Raises:
            DatabaseError: Any failure other than a missing relation/column
        """
        last_mismatch: SchemaMismatchError | None = None
        for column in self.tenant_columns:
            try:
                row = await self._fetch_one(
                    f"""
                    SELECT id, {column} AS tenant_id, enabled_tools, is_active, expires_at
                    FROM mcp_external_access_keys
                    WHERE key_hash = :key_hash
                    LIMIT 1
                    """,
                    {'key_hash': key_hash},
                )
            except SchemaMismatchError as e:
                logger.debug('gateway.tenant_column_missing', column=column)
                last_mismatch = e
                continue
            return row
        if last_mismatch is not None:
            raise last_mismatch
        return None

    async def touch_last_used(self, key_id: str) -> None:
        try:
            async with self.postgres.engine.begin() as conn:
                await conn.execute(
                    text('UPDATE mcp_external_access_keys SET last_used_at = :now WHERE id = :id'),
                    {'id': key_id, 'now': datetime.now(timezone.utc)},
                )
        except SQLAlchemyError as e:
            raise wrap_database_error(e, {'statement': 'UPDATE'}) from e


class ApiKeyAuthenticator:
    """
    Resolves a bearer header to an AuthResult.

    Usage:
        authenticator = ApiKeyAuthenticator(store)
        auth = await authenticator.authenticate(request.headers.get('authorization'))
    """

    def __init__(self, store: AccessKeyStore):
        self.store = store
        self._pending: set[asyncio.Task] = set()

    async def authenticate(self, authorization: str | None) -> AuthResult:
        """
        Raises:
            AuthenticationError: Missing/invalid/disabled/expired key, or the
                lookup itself failed
        """
        key = extract_bearer(authorization)
        try:
            row = await self.store.find_by_hash(hash_key(key))
        except DatabaseError as e:
            logger.error('gateway.auth_lookup_failed', error=str(e))
            raise AuthenticationError('Authentication failed') from e

        if row is None:
            raise AuthenticationError('Invalid API key')
        if not row.get('is_active'):
            raise AuthenticationError('API key is disabled')
        expires_at = row.get('expires_at')
        if expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at < datetime.now(timezone.utc):
                raise AuthenticationError('API key has expired')

        key_id = str(row['id'])
        self._touch_in_background(key_id)
        tenant_id = str(row['tenant_id'])
        return AuthResult(
            key_id=key_id,
            tenant_id=tenant_id,
            company_id=tenant_id,
            enabled_tools=list(row.get('enabled_tools') or []),
        )

    def _touch_in_background(self, key_id: str) -> None:
        task = asyncio.create_task(self._touch(key_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _touch(self, key_id: str) -> None:
        try:
            await self.store.touch_last_used(key_id)
        except DatabaseError as e:
            logger.warning('gateway.last_used_update_failed', key_id=key_id, error=str(e))
