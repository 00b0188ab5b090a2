"""
Postgres client for the communications orchestrator.

Thin connection holder over a SQLAlchemy 2.0 async engine with asyncpg.
All SQL lives in ``CommsRepository``; this module only owns URL
normalisation, pooling and connectivity checks.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = structlog.get_logger(__name__)

# libpq-only query params; asyncpg rejects them
LIBPQ_PARAMS = frozenset({'channel_binding', 'sslmode'})
SSL_MODES = frozenset({'require', 'verify-ca', 'verify-full'})
DRIVER_PREFIXES = (('postgres://', 'postgresql+asyncpg://'), ('postgresql://', 'postgresql+asyncpg://'))


def _split_url(url: str) -> tuple[str, str | None]:
    """Return (url without libpq params, sslmode or None)."""
    parsed = urlparse(url)
    if not parsed.query:
        return url, None
    params = parse_qs(parsed.query)
    sslmode = params.get('sslmode', [None])[0]
    kept = {k: v for k, v in params.items() if k not in LIBPQ_PARAMS}
    return urlunparse(parsed._replace(query=urlencode(kept, doseq=True))), sslmode


def normalize_database_url(url: str) -> str:
    """Strip libpq-only params and force the asyncpg driver prefix."""
    url, _ = _split_url(url)
    for prefix, replacement in DRIVER_PREFIXES:
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


class PostgresClient:
    """
    Async Postgres connection holder.

    ``sslmode=require`` (and the verify modes) in the URL become asyncpg's
    ``ssl`` connect argument. Prepared statement caching is off so the client
    works behind transaction-mode poolers.
    """

    def __init__(self, database_url: str | None = None):
        self._engine: AsyncEngine | None = None
        self._database_url = database_url

    async def connect(self, database_url: str | None = None) -> None:
        """Create the engine once; later calls are no-ops."""
        if self._engine is not None:
            return

        url = database_url or self._database_url
        if not url:
            raise ValueError('database_url is required')

        _, sslmode = _split_url(url)
        connect_args: dict[str, Any] = {'prepared_statement_cache_size': 0}
        if sslmode in SSL_MODES:
            connect_args['ssl'] = 'require'

        self._engine = create_async_engine(
            normalize_database_url(url),
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=30,
            connect_args=connect_args,
        )
        logger.info('postgres_client.connected', ssl=sslmode in SSL_MODES)

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        logger.info('postgres_client.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresClient not connected; call connect() first')
        return self._engine

    async def verify_connectivity(self) -> bool:
        """SELECT 1 through the pool; False (and a logged traceback) on any failure."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
        except Exception:
            logger.exception('postgres_client.connectivity_check_failed')
            return False
        return True
