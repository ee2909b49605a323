"""
Query execution boundary.

Runs an already-admitted query on a pooled connection and folds the outcome
into `QuerySuccess` or `QueryFailure`, so callers never see driver exceptions.
No retries and no extra safety checks happen here: admission is the caller's
job (see `query/service.py`).
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

import asyncpg

from core.db import Database

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Error executing query"
TIMEOUT_FAILURE_MESSAGE = "Query timed out."


@dataclass(frozen=True)
class QuerySuccess:
    columns: list[str]
    rows: list[dict[str, Any]]


@dataclass(frozen=True)
class QueryFailure:
    message: str
    cause: BaseException = field(repr=False, compare=False)


ExecutionResult = QuerySuccess | QueryFailure


def summarize_failure(exc: BaseException) -> str:
    """
    Engine errors carry messages that help learners fix their SQL; anything
    else (network, driver internals) is not passed through.
    """
    if isinstance(exc, asyncpg.PostgresError):
        message = str(exc).strip()
        return message or GENERIC_FAILURE_MESSAGE
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return TIMEOUT_FAILURE_MESSAGE
    return GENERIC_FAILURE_MESSAGE


def json_value(value: Any) -> Any:
    """
    Coerce one column value into something the JSON response can carry.

    bytea comes back as Postgres' hex text form (`\\xff`). Non-finite floats
    and numerics become their text form since JSON has no NaN or Infinity.
    Types the response encoder already handles (numbers, text, dates, UUIDs)
    pass through; anything else (ranges, bit strings, geometry) becomes
    `str(value)`.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Decimal):
        return value if value.is_finite() else str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (datetime.date, datetime.time, datetime.timedelta, uuid.UUID)):
        return value
    if isinstance(value, dict):
        return {str(key): json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_value(item) for item in value]
    return str(value)


class QueryExecutor:
    def __init__(self, database: Database) -> None:
        self._database = database

    async def run(self, sql: str, params: Sequence[Any] = ()) -> ExecutionResult:
        started = time.perf_counter()
        try:
            async with self._database.acquire() as conn:
                statement = await conn.prepare(sql)
                records = await statement.fetch(*params)
                # Attributes come from the statement, so empty results keep their columns.
                columns = [str(attr.name) for attr in statement.get_attributes()]
        except Exception as exc:
            logger.exception("query_failed error_type=%s", type(exc).__name__)
            return QueryFailure(message=summarize_failure(exc), cause=exc)

        rows = [
            {key: json_value(value) for key, value in dict(record).items()} for record in records
        ]
        logger.info(
            "query_succeeded rows=%s columns=%s duration_ms=%.1f",
            len(rows),
            len(columns),
            (time.perf_counter() - started) * 1000,
        )
        return QuerySuccess(columns=columns, rows=rows)
