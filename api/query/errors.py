"""
Query endpoint error taxonomy.

Each error is terminal for the request that raised it and is rendered as
`{"error": message}` by the handler registered in `api/main.py`.
"""

from __future__ import annotations

from fastapi import status


class QueryError(RuntimeError):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidQueryInput(QueryError):
    status_code = status.HTTP_400_BAD_REQUEST


class QueryUnauthorized(QueryError):
    status_code = status.HTTP_401_UNAUTHORIZED


class QueryRejected(QueryError):
    status_code = status.HTTP_403_FORBIDDEN


class QueryTargetNotFound(QueryError):
    """The saved analysis to run does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class QueryExecutionFailed(QueryError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
