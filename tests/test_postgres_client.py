"""
Tests for the PostgresClient connection holder.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from comms_orchestrator.clients.postgres_client import PostgresClient, normalize_database_url


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
    engine.dispose = AsyncMock()

    return engine, conn


@pytest.fixture
def client(mock_engine):
    engine, _ = mock_engine
    pg = PostgresClient()
    pg._engine = engine
    return pg


class TestNormalizeDatabaseUrl:
    def test_postgres_prefix(self):
        assert normalize_database_url('postgres://u:p@h/db') == 'postgresql+asyncpg://u:p@h/db'

    def test_postgresql_prefix(self):
        assert normalize_database_url('postgresql://u:p@h/db') == 'postgresql+asyncpg://u:p@h/db'

    def test_already_asyncpg(self):
        url = 'postgresql+asyncpg://u:p@h/db'
        assert normalize_database_url(url) == url

    def test_strips_libpq_params(self):
        url = normalize_database_url(
            'postgresql://u:p@h/db?sslmode=require&channel_binding=require&application_name=comms'
        )
        assert url == 'postgresql+asyncpg://u:p@h/db?application_name=comms'


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_requires_url(self):
        with pytest.raises(ValueError):
            await PostgresClient().connect()

    @pytest.mark.asyncio
    async def test_connect_passes_ssl(self):
        with patch('comms_orchestrator.clients.postgres_client.create_async_engine') as create:
            pg = PostgresClient('postgresql://u:p@h/db?sslmode=require')
            await pg.connect()
            await pg.connect()

        create.assert_called_once()
        args, kwargs = create.call_args
        assert args[0] == 'postgresql+asyncpg://u:p@h/db'
        assert kwargs['connect_args']['ssl'] == 'require'
        assert kwargs['connect_args']['prepared_statement_cache_size'] == 0

    def test_engine_before_connect(self):
        with pytest.raises(RuntimeError):
            PostgresClient().engine

    @pytest.mark.asyncio
    async def test_close_disposes(self, client, mock_engine):
        engine, _ = mock_engine
        await client.close()
        engine.dispose.assert_awaited_once()
        assert client._engine is None

    @pytest.mark.asyncio
    async def test_verify_connectivity(self, client, mock_engine):
        assert await client.verify_connectivity() is True

    @pytest.mark.asyncio
    async def test_verify_connectivity_failure(self, client, mock_engine):
        _, conn = mock_engine
        conn.execute.side_effect = Exception('connection refused')
        assert await client.verify_connectivity() is False
