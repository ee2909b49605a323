"""
Async database access helpers (raw SQL) using asyncpg.

`Database` owns a connection pool. The app builds two (see `api/main.py`):
the application database (users, tokens, projects) behind `get_database`, and
the playground database that learner queries run on, behind
`get_playground_database`. Each pool is created lazily on first use and
shared by every request in the process.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg
from fastapi import Request

from . import settings

logger = logging.getLogger(__name__)

PoolFactory = Callable[..., Awaitable[Any]]


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url(env_var: str = "DATABASE_URL") -> str:
    url = os.environ.get(env_var, "").strip()
    if not url:
        raise RuntimeError(f"{env_var} is not set.")
    return _sanitize_database_url(url)


def playground_database_url() -> str:
    """
    DSN for learner queries. It must not be the application database, which
    holds users, password hashes and refresh tokens.
    """
    url = database_url("PLAYGROUND_DATABASE_URL")
    app_url = os.environ.get("DATABASE_URL", "").strip()
    if app_url and _sanitize_database_url(app_url) == url:
        raise RuntimeError("PLAYGROUND_DATABASE_URL must not point at the application database.")
    return url


def _record_to_dict(record: Any) -> dict[str, Any]:
    return dict(record)


async def _create_asyncpg_pool(**kwargs: Any) -> asyncpg.Pool:
    return await asyncpg.create_pool(**kwargs)


class Database:
    """
    Lazily created, process-wide connection pool.

    Without an explicit `dsn`, `url_resolver` supplies one when the pool is
    first created (`database_url` or `playground_database_url`).

    `pool_factory` receives `dsn`, `min_size`, `max_size` and
    `command_timeout` keyword arguments; tests pass a fake one.
    """

    def __init__(
        self,
        dsn: str | None = None,
        *,
        url_resolver: Callable[[], str] = database_url,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
        acquire_timeout: float | None = None,
        pool_factory: PoolFactory | None = None,
    ) -> None:
        self._dsn = dsn
        self._url_resolver = url_resolver
        self.min_size = settings.db_pool_min_size() if min_size is None else min_size
        self.max_size = settings.db_pool_max_size() if max_size is None else max_size
        self.command_timeout = (
            settings.db_command_timeout_s() if command_timeout is None else command_timeout
        )
        self.acquire_timeout = (
            settings.db_acquire_timeout_s() if acquire_timeout is None else acquire_timeout
        )
        self._pool_factory = pool_factory or _create_asyncpg_pool
        self._pool: Any | None = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    async def pool(self) -> Any:
        if self._pool is not None:
            return self._pool
        async with self._lock:
            # Another request may have created it while we waited.
            if self._pool is None:
                logger.info("db_pool_create min_size=%s max_size=%s", self.min_size, self.max_size)
                self._pool = await self._pool_factory(
                    dsn=self._dsn or self._url_resolver(),
                    min_size=self.min_size,
                    max_size=self.max_size,
                    command_timeout=self.command_timeout,
                )
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        """
        Borrow one connection; it goes back to the pool on every exit path,
        cancellation included.
        """
        pool = await self.pool()
        async with pool.acquire(timeout=self.acquire_timeout) as conn:
            yield conn

    async def close(self) -> None:
        if self._pool is None:
            return None
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("db_pool_close")

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        async with self.acquire() as conn:
            row = await conn.fetchrow(sql, *args)
        return _record_to_dict(row) if row is not None else None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as a list of dicts.
        """
        async with self.acquire() as conn:
            rows = await conn.fetch(sql, *args)
        return [_record_to_dict(r) for r in rows]

    async def execute(self, sql: str, *args: Any) -> None:
        """
        Run a statement (INSERT/UPDATE/DELETE/DDL). No result returned.
        """
        async with self.acquire() as conn:
            await conn.execute(sql, *args)


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_playground_database(request: Request) -> Database:
    return request.app.state.playground_database
