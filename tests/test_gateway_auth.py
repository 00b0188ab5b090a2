"""
Tests for tool gateway API key authentication.

Tests cover:
- Bearer header parsing with exact error messages
- Key lookup across tenant column variants
- Disabled/expired keys and lookup failures
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError

from comms_orchestrator.clients.postgres_client import PostgresClient
from comms_orchestrator.errors import DatabaseConnectionError, DatabaseQueryError, SchemaMismatchError
from tool_gateway.auth import (
    AccessKeyStore,
    ApiKeyAuthenticator,
    extract_bearer,
    generate_api_key,
    hash_key,
)
from tool_gateway.errors import AuthenticationError


@pytest.fixture
def mock_engine():
    """Create a mock AsyncEngine with a mock connection context manager."""
    engine = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock()

    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)

    engine.begin = MagicMock(return_value=ctx)
    return engine, conn


@pytest.fixture
def store(mock_engine) -> AccessKeyStore:
    engine, _ = mock_engine
    pg = PostgresClient()
    pg._engine = engine
    return AccessKeyStore(pg)


def _result(row):
    result = MagicMock()
    result.mappings.return_value.first.return_value = row
    return result


def _key_row(**overrides):
    row = {
        'id': 'key-1',
        'tenant_id': 'company-1',
        'enabled_tools': ['identify_project', 'crm_read'],
        'is_active': True,
        'expires_at': None,
    }
    row.update(overrides)
    return row


def _authenticator(row=None, error=None) -> ApiKeyAuthenticator:
    store = MagicMock()
    store.find_by_hash = AsyncMock(return_value=row, side_effect=error)
    store.touch_last_used = AsyncMock()
    return ApiKeyAuthenticator(store)


class TestKeys:
    def test_hash_is_sha256_hex(self):
        assert hash_key('abc') == 'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'

    def test_generate(self):
        key, key_hash = generate_api_key()
        assert len(key) == 64
        assert key_hash == hash_key(key)

    @pytest.mark.parametrize(
        'header,message',
        [
            (None, 'Missing Authorization header'),
            ('Token abc', "Invalid Authorization header format. Expected 'Bearer <key>'"),
            ('Bearer   ', 'Empty API key'),
        ],
    )
    def test_bad_headers(self, header, message):
        with pytest.raises(AuthenticationError) as exc_info:
            extract_bearer(header)
        assert exc_info.value.message == message
        assert exc_info.value.status_code == 401

    def test_extracts_key(self):
        assert extract_bearer('Bearer secret-key') == 'secret-key'


class TestAccessKeyStore:
    @pytest.mark.asyncio
    async def test_first_variant_hit(self, store, mock_engine):
        _, conn = mock_engine
        conn.execute.return_value = _result(_key_row())

        row = await store.find_by_hash('h')

        assert row['tenant_id'] == 'company-1'
        assert conn.execute.await_count == 1
        assert 'tenant_id AS tenant_id' in str(conn.execute.call_args.args[0])

    @pytest.mark.asyncio
    async def test_falls_back_to_company_column(self, store, mock_engine):
        _, conn = mock_engine
        conn.execute.side_effect = [
            ProgrammingError('SELECT', {}, Exception('column "tenant_id" does not exist')),
            _result(_key_row(tenant_id='company-2')),
        ]

        row = await store.find_by_hash('h')

        assert row['tenant_id'] == 'company-2'
        assert 'company_id AS tenant_id' in str(conn.execute.call_args.args[0])

    @pytest.mark.asyncio
    async def test_all_variants_missing(self, store, mock_engine):
        _, conn = mock_engine
        conn.execute.side_effect = ProgrammingError(
            'SELECT', {}, Exception('column "x" does not exist')
        )

        with pytest.raises(SchemaMismatchError):
            await store.find_by_hash('h')

    @pytest.mark.asyncio
    async def test_other_errors_are_fatal(self, store, mock_engine):
        _, conn = mock_engine
        conn.execute.side_effect = OperationalError('SELECT', {}, Exception('could not connect to server'))

        with pytest.raises(DatabaseConnectionError):
            await store.find_by_hash('h')
        assert conn.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_key(self, store, mock_engine):
        _, conn = mock_engine
        conn.execute.return_value = _result(None)
        assert await store.find_by_hash('h') is None


class TestAuthenticator:
    @pytest.mark.asyncio
    async def test_valid_key(self):
        authenticator = _authenticator(_key_row())

        auth = await authenticator.authenticate('Bearer secret')
        await asyncio.sleep(0)

        assert auth.tenant_id == 'company-1'
        assert auth.company_id == 'company-1'
        assert auth.enabled_tools == ['identify_project', 'crm_read']
        authenticator.store.find_by_hash.assert_awaited_once_with(hash_key('secret'))
        authenticator.store.touch_last_used.assert_awaited_once_with('key-1')

    @pytest.mark.asyncio
    async def test_unknown_key(self):
        with pytest.raises(AuthenticationError, match='Invalid API key'):
            await _authenticator(None).authenticate('Bearer secret')

    @pytest.mark.asyncio
    async def test_disabled_key(self):
        with pytest.raises(AuthenticationError, match='API key is disabled'):
            await _authenticator(_key_row(is_active=False)).authenticate('Bearer secret')

    @pytest.mark.asyncio
    async def test_expired_key(self):
        expired = datetime.now(timezone.utc) - timedelta(days=1)
        with pytest.raises(AuthenticationError, match='API key has expired'):
            await _authenticator(_key_row(expires_at=expired)).authenticate('Bearer secret')

    @pytest.mark.asyncio
    async def test_naive_expiry_treated_as_utc(self):
        future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)
        auth = await _authenticator(_key_row(expires_at=future)).authenticate('Bearer secret')
        assert auth.key_id == 'key-1'

    @pytest.mark.asyncio
    async def test_lookup_failure(self):
        authenticator = _authenticator(error=DatabaseQueryError('timeout'))

        with pytest.raises(AuthenticationError) as exc_info:
            await authenticator.authenticate('Bearer secret')
        assert exc_info.value.message == 'Authentication failed'

    @pytest.mark.asyncio
    async def test_touch_failure_is_logged_only(self):
        authenticator = _authenticator(_key_row())
        authenticator.store.touch_last_used.side_effect = DatabaseQueryError('readonly')

        auth = await authenticator.authenticate('Bearer secret')
        await asyncio.sleep(0)

        assert auth.key_id == 'key-1'
