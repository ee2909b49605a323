"""
Query orchestration.

Flow per query:
1) authorize the caller for the query context
2) validate the payload (`{"query": "<non-empty string>"}`)
3) admission filter (mutating keywords are rejected)
4) execute on the shared pool

Every step either passes or raises a terminal `QueryError`.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import ValidationError

from . import admission, schemas
from .access import CallerIdentity, QueryContext
from .errors import InvalidQueryInput, QueryExecutionFailed, QueryRejected, QueryUnauthorized
from .executor import QueryExecutor, QueryFailure, QuerySuccess

logger = logging.getLogger(__name__)

INVALID_QUERY_MESSAGE = "Invalid query"
UNAUTHORIZED_MESSAGE = "Unauthorized"


def authorize(caller: CallerIdentity, context: QueryContext) -> None:
    if not caller.is_authorized(context):
        logger.warning(
            "query_unauthorized source=%s user_id=%s owner_id=%s",
            context.source,
            caller.user_id,
            context.owner_id,
        )
        raise QueryUnauthorized(UNAUTHORIZED_MESSAGE)


def parse_payload(payload: Any) -> str:
    try:
        request = schemas.QueryRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidQueryInput(INVALID_QUERY_MESSAGE) from exc
    return request.query


def check_admission(sql: str) -> None:
    verdict = admission.admit(sql)
    if isinstance(verdict, admission.Rejected):
        logger.warning("query_rejected rule=%s", verdict.rule)
        raise QueryRejected(verdict.reason)


async def execute(
    sql: str,
    *,
    executor: QueryExecutor,
    params: Sequence[Any] = (),
) -> QuerySuccess:
    check_admission(sql)
    result = await executor.run(sql, params)
    if isinstance(result, QueryFailure):
        raise QueryExecutionFailed(result.message) from result.cause
    return result


async def run_query(
    payload: Any,
    *,
    executor: QueryExecutor,
    caller: CallerIdentity,
    context: QueryContext | None = None,
) -> QuerySuccess:
    authorize(caller, context or QueryContext())
    sql = parse_payload(payload)
    return await execute(sql, executor=executor)


async def run_saved_query(
    sql: str,
    *,
    executor: QueryExecutor,
    caller: CallerIdentity,
    context: QueryContext,
) -> QuerySuccess:
    """
    Run a query stored with an analysis. It was admitted when saved, but the
    rules may have changed since, so it is admitted again.
    """
    authorize(caller, context)
    return await execute(sql, executor=executor)


def to_response(result: QuerySuccess) -> dict:
    return {"data": result.rows, "columns": result.columns}
