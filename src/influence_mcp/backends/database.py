"""Shared, lazily created asyncpg pool for ad-hoc SQL."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import asyncpg

from influence_mcp.config import DatabaseConfig
from influence_mcp.errors import ConfigurationMissing, DatabaseError
from influence_mcp.obs.logger import get_logger

log = get_logger("database")


class DatabasePool:
    """Process-wide holder for one bounded connection pool.

    The pool is created on first use. Concurrent first callers await the same
    initialization task, so at most one pool is ever created. Callers beyond
    ``max_size`` queue for a connection until ``acquire_timeout_seconds``.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._pool: asyncpg.Pool | None = None
        self._init_task: asyncio.Task[asyncpg.Pool] | None = None

    @property
    def initialized(self) -> bool:
        return self._pool is not None

    async def get(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        if not self.config.configured:
            raise ConfigurationMissing(
                "DB not configured: set DB_HOST, DB_NAME, DB_USER and DB_PASSWORD"
            )
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._create_pool())
        try:
            self._pool = await asyncio.shield(self._init_task)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            self._init_task = None
            log.error("Postgres pool creation failed: %s", exc.__class__.__name__)
            raise DatabaseError(f"Database unavailable: {exc.__class__.__name__}") from None
        return self._pool

    async def fetch(
        self,
        query: str,
        params: list[Any] | None = None,
        *,
        readonly: bool = True,
    ) -> list[dict[str, Any]]:
        pool = await self.get()
        with _database_errors():
            async with pool.acquire(timeout=self.config.acquire_timeout_seconds) as conn:
                if readonly:
                    # A read-only transaction rejects data-modifying CTEs as well.
                    async with conn.transaction(readonly=True):
                        records = await conn.fetch(query, *(params or []))
                else:
                    records = await conn.fetch(query, *(params or []))
        return [dict(record) for record in records]

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._init_task = None
            log.info("Postgres pool closed")

    async def _create_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            host=self.config.host,
            port=self.config.port,
            database=self.config.name,
            user=self.config.user,
            password=self.config.password,
            min_size=0,
            max_size=self.config.max_size,
            timeout=self.config.acquire_timeout_seconds,
            max_inactive_connection_lifetime=self.config.idle_lifetime_seconds,
        )
        log.info(
            "Postgres pool ready: %s:%s/%s (max %d)",
            self.config.host,
            self.config.port,
            self.config.name,
            self.config.max_size,
        )
        return pool


@contextmanager
def _database_errors() -> Iterator[None]:
    """Map driver failures onto `DatabaseError` with a caller-safe message."""
    try:
        yield
    except asyncpg.PostgresError as exc:
        raise DatabaseError(f"SQL error: {exc}") from None
    except TimeoutError:
        # TimeoutError is an OSError; it must be matched first.
        raise DatabaseError("Timed out waiting for a database connection") from None
    except (OSError, asyncpg.InterfaceError) as exc:
        log.error("Postgres connection failed: %s", exc.__class__.__name__)
        raise DatabaseError(f"Database unavailable: {exc.__class__.__name__}") from None
