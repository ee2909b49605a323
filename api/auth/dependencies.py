"""
Auth dependencies for protected FastAPI routes.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status

from core import settings
from core.db import Database, get_database
from query.access import AnonymousCaller, AuthenticatedCaller, CallerIdentity
from query.errors import QueryUnauthorized

from . import service


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
        )

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format.",
        )

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization must be: Bearer <token>.",
        )
    return token


async def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    return _extract_bearer_token(authorization)


async def get_current_user(
    access_token: str = Depends(get_bearer_token),
    database: Database = Depends(get_database),
) -> dict:
    return await service.get_user_from_access_token(database, access_token)


async def get_query_caller(
    authorization: str | None = Header(default=None),
    database: Database = Depends(get_database),
) -> CallerIdentity:
    """
    Resolve the caller of a query endpoint.

    No header means an anonymous caller, who is only let through when
    QUERY_AUTH_REQUIRED is off. A header that does not resolve to an active
    user is always rejected, so a bad token never falls back to anonymous.
    """
    if not (authorization or "").strip():
        return AnonymousCaller(allow_anonymous=not settings.query_auth_required())

    try:
        token = _extract_bearer_token(authorization)
        user_row = await service.get_user_from_access_token(database, token)
    except HTTPException as exc:
        raise QueryUnauthorized(str(exc.detail)) from exc
    return AuthenticatedCaller(user=user_row)
