from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import asyncpg
import pytest

from query.executor import (
    GENERIC_FAILURE_MESSAGE,
    TIMEOUT_FAILURE_MESSAGE,
    QueryExecutor,
    QueryFailure,
    QuerySuccess,
    json_value,
    summarize_failure,
)


@pytest.mark.asyncio
async def test_select_returns_columns_and_rows_in_order(database, sqlite_pool) -> None:
    result = await QueryExecutor(database).run("SELECT name FROM users ORDER BY name")

    assert result == QuerySuccess(columns=["name"], rows=[{"name": "A"}, {"name": "B"}])
    assert sqlite_pool.in_use == 0


@pytest.mark.asyncio
async def test_columns_follow_projection_order_even_without_rows(database) -> None:
    result = await QueryExecutor(database).run("SELECT sales, product_name FROM products")

    assert isinstance(result, QuerySuccess)
    assert result.columns == ["sales", "product_name"]
    assert result.rows == []


@pytest.mark.asyncio
async def test_bind_parameters_are_forwarded(database) -> None:
    result = await QueryExecutor(database).run("SELECT name FROM users WHERE name = ?", ("B",))

    assert isinstance(result, QuerySuccess)
    assert result.rows == [{"name": "B"}]


@pytest.mark.asyncio
async def test_engine_error_becomes_failure_and_releases_connection(database, sqlite_pool) -> None:
    executor = QueryExecutor(database)

    failed = await executor.run("SELEKT * FROM users")

    assert isinstance(failed, QueryFailure)
    assert failed.message == GENERIC_FAILURE_MESSAGE
    assert failed.cause is not None
    assert sqlite_pool.in_use == 0

    follow_up = await executor.run("SELECT name FROM users ORDER BY name")
    assert isinstance(follow_up, QuerySuccess)
    assert sqlite_pool.acquired == sqlite_pool.released == 2


@pytest.mark.asyncio
async def test_pool_is_created_once_on_first_use(database, pool_factory) -> None:
    assert not database.is_initialized
    executor = QueryExecutor(database)

    results = await asyncio.gather(*(executor.run("SELECT name FROM users") for _ in range(5)))

    assert all(isinstance(result, QuerySuccess) for result in results)
    assert len(pool_factory.calls) == 1
    assert pool_factory.calls[0]["max_size"] == 2
    assert database.is_initialized


@pytest.mark.asyncio
async def test_cancellation_releases_connection(database, sqlite_pool) -> None:
    started = asyncio.Event()
    sqlite_pool.blocking = started

    task = asyncio.create_task(QueryExecutor(database).run("SELECT pg_sleep(60)"))
    await started.wait()
    assert sqlite_pool.in_use == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert sqlite_pool.in_use == 0


@pytest.mark.asyncio
async def test_pool_creation_failure_is_a_failure() -> None:
    from core.db import Database

    async def broken_factory(**_kwargs):
        raise OSError("connection refused")

    result = await QueryExecutor(Database(dsn="postgresql://nowhere", pool_factory=broken_factory)).run(
        "SELECT 1"
    )

    assert isinstance(result, QueryFailure)
    assert result.message == GENERIC_FAILURE_MESSAGE
    assert isinstance(result.cause, OSError)


def test_engine_messages_are_passed_through() -> None:
    exc = asyncpg.PostgresSyntaxError('syntax error at or near "SELEKT"')

    assert summarize_failure(exc) == 'syntax error at or near "SELEKT"'


def test_timeouts_are_summarized() -> None:
    assert summarize_failure(asyncio.TimeoutError()) == TIMEOUT_FAILURE_MESSAGE


def test_other_errors_are_not_exposed() -> None:
    exc = ConnectionResetError("peer 10.0.0.5:5432 reset the connection")

    assert summarize_failure(exc) == GENERIC_FAILURE_MESSAGE


@pytest.mark.asyncio
async def test_binary_and_non_finite_values_are_json_safe(database) -> None:
    result = await QueryExecutor(database).run("SELECT x'ff00' AS b, 1e999 AS big, 'x' AS s")

    assert isinstance(result, QuerySuccess)
    assert result.rows == [{"b": "\\xff00", "big": "inf", "s": "x"}]


def test_json_value_keeps_encodable_types() -> None:
    stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ident = uuid.UUID("12345678-1234-5678-1234-567812345678")

    assert json_value(stamp) is stamp
    assert json_value(ident) is ident
    assert json_value(Decimal("1.50")) == Decimal("1.50")
    assert json_value(None) is None
    assert json_value(True) is True


def test_json_value_falls_back_to_text() -> None:
    span = asyncpg.Range(1, 5)

    assert json_value(span) == str(span)
    assert json_value(Decimal("NaN")) == "NaN"
    assert json_value(float("-inf")) == "-inf"
    assert json_value([b"\x01", {"k": memoryview(b"\x02")}]) == ["\\x01", {"k": "\\x02"}]
