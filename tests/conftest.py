"""
Pytest configuration for the SQL playground API.

Provides fixtures for:
- an in-memory fake connection pool backed by sqlite3, implementing the part
  of the asyncpg pool/connection API the query boundary uses
- two `Database`s on separate fake pools: the playground database learner
  queries run on, and the application database (users, tokens, projects)
- a FastAPI app and TestClient built around them
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, AsyncIterator, Generator

import pytest
from fastapi.testclient import TestClient

from auth import dependencies as auth_dependencies
from core.db import Database
from main import create_app
from query.access import AuthenticatedCaller

ACTIVE_USER = {"id": 1, "email": "ada@example.com", "full_name": "Ada", "is_active": True}


class SqliteStatement:
    def __init__(self, db: sqlite3.Connection, sql: str) -> None:
        self._db = db
        self._sql = sql
        self._description: tuple = ()

    async def fetch(self, *args: Any) -> list[sqlite3.Row]:
        cursor = self._db.execute(self._sql, args)
        rows = cursor.fetchall()
        self._description = cursor.description or ()
        return rows

    def get_attributes(self) -> list[SimpleNamespace]:
        return [SimpleNamespace(name=column[0]) for column in self._description]


class BlockingStatement:
    """Statement whose fetch never finishes; used to exercise cancellation."""

    def __init__(self, started: asyncio.Event) -> None:
        self._started = started

    async def fetch(self, *args: Any) -> list[sqlite3.Row]:
        self._started.set()
        await asyncio.Event().wait()
        return []

    def get_attributes(self) -> list[SimpleNamespace]:
        return []


class SqliteConnection:
    def __init__(self, db: sqlite3.Connection, blocking: asyncio.Event | None = None) -> None:
        self._db = db
        self._blocking = blocking

    async def prepare(self, sql: str) -> SqliteStatement | BlockingStatement:
        if self._blocking is not None:
            return BlockingStatement(self._blocking)
        return SqliteStatement(self._db, sql)

    async def fetch(self, sql: str, *args: Any) -> list[sqlite3.Row]:
        return self._db.execute(sql, args).fetchall()

    async def fetchrow(self, sql: str, *args: Any) -> sqlite3.Row | None:
        return self._db.execute(sql, args).fetchone()

    async def execute(self, sql: str, *args: Any) -> str:
        self._db.execute(sql, args)
        return "OK"


class SqlitePool:
    """
    Counts acquisitions and releases so tests can assert nothing leaks.
    """

    def __init__(self, db: sqlite3.Connection) -> None:
        self.db = db
        self.acquired = 0
        self.released = 0
        self.closed = False
        self.blocking: asyncio.Event | None = None

    @property
    def in_use(self) -> int:
        return self.acquired - self.released

    @asynccontextmanager
    async def acquire(self, timeout: float | None = None) -> AsyncIterator[SqliteConnection]:
        self.acquired += 1
        try:
            yield SqliteConnection(self.db, blocking=self.blocking)
        finally:
            self.released += 1

    async def close(self) -> None:
        self.closed = True


class PoolFactory:
    def __init__(self, pool: SqlitePool) -> None:
        self.pool = pool
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> SqlitePool:
        self.calls.append(kwargs)
        # Yield once so concurrent first uses overlap.
        await asyncio.sleep(0)
        return self.pool


@pytest.fixture
def sqlite_db() -> Generator[sqlite3.Connection, None, None]:
    # TestClient serves requests from another thread.
    db = sqlite3.connect(":memory:", check_same_thread=False)
    db.row_factory = sqlite3.Row
    db.execute("CREATE TABLE users (name TEXT NOT NULL)")
    db.executemany("INSERT INTO users (name) VALUES (?)", [("A",), ("B",)])
    db.execute("CREATE TABLE products (product_name TEXT, sales INTEGER)")
    db.commit()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def sqlite_pool(sqlite_db: sqlite3.Connection) -> SqlitePool:
    return SqlitePool(sqlite_db)


@pytest.fixture
def pool_factory(sqlite_pool: SqlitePool) -> PoolFactory:
    return PoolFactory(sqlite_pool)


@pytest.fixture
def database(pool_factory: PoolFactory) -> Database:
    """Playground database: the one learner queries run on."""
    return Database(
        dsn="postgresql://test@localhost/playground",
        min_size=1,
        max_size=2,
        command_timeout=5,
        acquire_timeout=1,
        pool_factory=pool_factory,
    )


@pytest.fixture
def app_sqlite_db() -> Generator[sqlite3.Connection, None, None]:
    db = sqlite3.connect(":memory:", check_same_thread=False)
    db.row_factory = sqlite3.Row
    db.execute("CREATE TABLE accounts (email TEXT NOT NULL, password_hash TEXT NOT NULL)")
    db.execute(
        "INSERT INTO accounts (email, password_hash) VALUES (?, ?)",
        ("victim@example.com", "$2b$12$secrethash"),
    )
    db.commit()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def app_pool(app_sqlite_db: sqlite3.Connection) -> SqlitePool:
    return SqlitePool(app_sqlite_db)


@pytest.fixture
def app_database(app_pool: SqlitePool) -> Database:
    """Application database: users, tokens, projects."""
    return Database(
        dsn="postgresql://test@localhost/app",
        min_size=1,
        max_size=2,
        pool_factory=PoolFactory(app_pool),
    )


@pytest.fixture
def app(app_database: Database, database: Database):
    return create_app(database=app_database, playground_database=database)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def authed_client(app) -> Generator[TestClient, None, None]:
    """Client whose query caller is an active, signed-in user."""
    app.dependency_overrides[auth_dependencies.get_query_caller] = lambda: AuthenticatedCaller(
        user=dict(ACTIVE_USER)
    )
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: dict(ACTIVE_USER)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
