"""
Query API endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from auth import dependencies as auth_dependencies
from core.db import Database, get_playground_database

from . import service
from .access import CallerIdentity
from .executor import QueryExecutor

router = APIRouter()


def get_query_executor(database: Database = Depends(get_playground_database)) -> QueryExecutor:
    return QueryExecutor(database)


async def _read_json_body(request: Request) -> Any:
    # Undecodable bodies become None and fail validation after the auth check.
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/api/query")
async def run_query(
    request: Request,
    executor: QueryExecutor = Depends(get_query_executor),
    caller: CallerIdentity = Depends(auth_dependencies.get_query_caller),
) -> dict:
    """
    Run a read-only query from the SQL playground.

    The body is read by hand instead of through a pydantic parameter so that
    malformed input maps to 400 `{"error": ...}` rather than FastAPI's 422.
    """
    payload = await _read_json_body(request)
    result = await service.run_query(payload, executor=executor, caller=caller)
    return service.to_response(result)
