"""
Query boundary against a real Postgres.

Skipped unless PLAYGROUND_DATABASE_URL (or DATABASE_URL) points at a reachable
server.
"""

from __future__ import annotations

import os
import socket
from urllib.parse import urlsplit

import asyncpg
import pytest

from core.db import Database
from query import service
from query.access import AnonymousCaller
from query.errors import QueryExecutionFailed
from query.executor import QueryExecutor, QueryFailure, QuerySuccess

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]

USERS_QUERY = "SELECT name FROM (VALUES ('A'), ('B')) AS users (name) ORDER BY name"


def _reachable(dsn: str) -> bool:
    parts = urlsplit(dsn)
    try:
        with socket.create_connection((parts.hostname or "localhost", parts.port or 5432), timeout=3):
            return True
    except OSError:
        return False


@pytest.fixture
def dsn() -> str:
    url = (os.environ.get("PLAYGROUND_DATABASE_URL") or os.environ.get("DATABASE_URL", "")).strip()
    if not url or not _reachable(url):
        pytest.skip("Postgres not available for integration tests")
    return url


async def test_select_round_trip(dsn: str) -> None:
    database = Database(dsn=dsn, min_size=1, max_size=1)
    try:
        result = await QueryExecutor(database).run(USERS_QUERY)
    finally:
        await database.close()

    assert result == QuerySuccess(columns=["name"], rows=[{"name": "A"}, {"name": "B"}])


async def test_syntax_error_keeps_single_connection_pool_usable(dsn: str) -> None:
    # One connection: the follow-up only succeeds if the failed query released it.
    database = Database(dsn=dsn, min_size=1, max_size=1, acquire_timeout=2)
    executor = QueryExecutor(database)
    try:
        failed = await executor.run("SELEKT * FROM users")
        follow_up = await executor.run(USERS_QUERY)
    finally:
        await database.close()

    assert isinstance(failed, QueryFailure)
    assert isinstance(failed.cause, asyncpg.PostgresSyntaxError)
    assert "SELEKT" in failed.message
    assert isinstance(follow_up, QuerySuccess)


async def test_statement_timeout_is_a_failure(dsn: str) -> None:
    database = Database(dsn=dsn, min_size=1, max_size=1, command_timeout=0.5)
    try:
        result = await QueryExecutor(database).run("SELECT pg_sleep(2)")
    finally:
        await database.close()

    assert isinstance(result, QueryFailure)
    assert result.message == "Query timed out."


async def test_service_surfaces_engine_message(dsn: str) -> None:
    database = Database(dsn=dsn, min_size=1, max_size=1)
    try:
        with pytest.raises(QueryExecutionFailed) as excinfo:
            await service.run_query(
                {"query": "SELECT * FROM table_that_does_not_exist"},
                executor=QueryExecutor(database),
                caller=AnonymousCaller(allow_anonymous=True),
            )
    finally:
        await database.close()

    assert "table_that_does_not_exist" in excinfo.value.message
