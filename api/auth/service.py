"""
Auth business logic.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import asyncpg
from fastapi import HTTPException, status

from core.db import Database

from . import repository, schemas, security

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def _issue_token_pair(
    database: Database,
    *,
    user_row: dict,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[schemas.TokenPairResponse, int]:
    user_id = int(user_row["id"])
    access_token = security.build_access_token(user_id=user_id, email=str(user_row["email"]))
    raw_refresh_token = security.build_refresh_token()

    refresh_row = await repository.insert_refresh_token(
        database,
        user_id=user_id,
        token_hash=security.hash_refresh_token(raw_refresh_token),
        expires_at=_utc_now() + timedelta(days=security.refresh_token_expire_days()),
        user_agent=user_agent,
        ip_address=ip_address,
    )
    tokens = schemas.TokenPairResponse(access_token=access_token, refresh_token=raw_refresh_token)
    return tokens, int(refresh_row["id"])


async def register(
    database: Database,
    payload: schemas.RegisterRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AuthResponse:
    if await repository.get_user_by_email(database, payload.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already registered.",
        )

    try:
        user_row = await repository.create_user(
            database,
            email=payload.email,
            password_hash=security.hash_password(payload.password),
            full_name=payload.full_name,
        )
    except asyncpg.UniqueViolationError as exc:
        # Lost a race with a concurrent registration for the same email.
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already registered.",
        ) from exc

    tokens, _ = await _issue_token_pair(
        database,
        user_row=user_row,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    logger.info("user_registered user_id=%s", user_row["id"])
    return schemas.AuthResponse(user=schemas.UserResponse.from_row(user_row), tokens=tokens)


async def login(
    database: Database,
    payload: schemas.LoginRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.AuthResponse:
    user_row = await repository.get_user_by_email(database, payload.email)
    if user_row is None:
        raise _unauthorized("Invalid email or password.")

    if not security.verify_password(payload.password, str(user_row.get("password_hash") or "")):
        raise _unauthorized("Invalid email or password.")

    if not bool(user_row.get("is_active", False)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive.",
        )

    tokens, _ = await _issue_token_pair(
        database,
        user_row=user_row,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    return schemas.AuthResponse(user=schemas.UserResponse.from_row(user_row), tokens=tokens)


async def refresh_tokens(
    database: Database,
    payload: schemas.RefreshRequest,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> schemas.TokenPairResponse:
    incoming = (payload.refresh_token or "").strip()
    if not incoming:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="refresh_token is required.",
        )

    old_token_row = await repository.get_refresh_token_by_hash(
        database, security.hash_refresh_token(incoming)
    )
    if old_token_row is None:
        raise _unauthorized("Invalid refresh token.")

    old_token_id = int(old_token_row["id"])
    if old_token_row.get("revoked_at") is not None:
        if old_token_row.get("replaced_by_token_id") is not None:
            # A rotated token came back: treat the whole session family as leaked.
            logger.warning("refresh_token_reuse user_id=%s", old_token_row["user_id"])
            await repository.revoke_all_refresh_tokens_for_user(database, int(old_token_row["user_id"]))
        raise _unauthorized("Refresh token is revoked.")

    expires_at = old_token_row.get("expires_at")
    if not isinstance(expires_at, datetime) or expires_at <= _utc_now():
        await repository.revoke_refresh_token_by_id(database, old_token_id)
        raise _unauthorized("Refresh token is expired.")

    user_row = await repository.get_user_by_id(database, int(old_token_row["user_id"]))
    if user_row is None or not bool(user_row.get("is_active", False)):
        await repository.revoke_refresh_token_by_id(database, old_token_id)
        raise _unauthorized("Invalid refresh token owner.")

    tokens, new_token_id = await _issue_token_pair(
        database,
        user_row=user_row,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    await repository.rotate_refresh_token(database, old_token_id=old_token_id, new_token_id=new_token_id)
    return tokens


async def logout(
    database: Database,
    payload: schemas.LogoutRequest,
    *,
    current_user_id: int | None = None,
) -> dict[str, bool]:
    refresh_token = (payload.refresh_token or "").strip()
    if refresh_token:
        await repository.revoke_refresh_token_by_hash(
            database, security.hash_refresh_token(refresh_token)
        )
        return {"ok": True}

    if current_user_id is not None:
        await repository.revoke_all_refresh_tokens_for_user(database, current_user_id)
        return {"ok": True}

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Provide refresh_token or authenticated user.",
    )


async def get_user_from_access_token(database: Database, access_token: str) -> dict:
    try:
        claims = security.decode_access_token(access_token)
    except security.AuthSecurityError as exc:
        raise _unauthorized(str(exc)) from exc

    user_row = await repository.get_user_by_id(database, claims.user_id)
    if user_row is None:
        raise _unauthorized("User not found.")
    if not bool(user_row.get("is_active", False)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive.",
        )
    return user_row


def me(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse.from_row(user_row)
