"""
Auth persistence helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone

from core.db import Database

USER_COLUMNS = "id, email, full_name, is_active, created_at, updated_at"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def create_user(
    database: Database,
    *,
    email: str,
    password_hash: str,
    full_name: str = "",
    is_active: bool = True,
) -> dict:
    row = await database.fetch_one(
        f"""
        INSERT INTO users (email, password_hash, full_name, is_active)
        VALUES ($1, $2, $3, $4)
        RETURNING {USER_COLUMNS}
        """,
        normalize_email(email),
        password_hash,
        (full_name or "").strip(),
        is_active,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def get_user_by_email(database: Database, email: str) -> dict | None:
    return await database.fetch_one(
        f"""
        SELECT {USER_COLUMNS}, password_hash
        FROM users
        WHERE lower(email) = lower($1)
        """,
        normalize_email(email),
    )


async def get_user_by_id(database: Database, user_id: int) -> dict | None:
    return await database.fetch_one(
        f"""
        SELECT {USER_COLUMNS}
        FROM users
        WHERE id = $1
        """,
        user_id,
    )


async def insert_refresh_token(
    database: Database,
    *,
    user_id: int,
    token_hash: str,
    expires_at: datetime,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> dict:
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    row = await database.fetch_one(
        """
        INSERT INTO refresh_tokens (user_id, token_hash, expires_at, user_agent, ip_address)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING id, user_id, expires_at, revoked_at, created_at
        """,
        user_id,
        token_hash,
        expires_at,
        user_agent,
        ip_address,
    )
    if row is None:
        raise RuntimeError("Failed to insert refresh token.")
    return row


async def get_refresh_token_by_hash(database: Database, token_hash: str) -> dict | None:
    return await database.fetch_one(
        """
        SELECT id, user_id, expires_at, revoked_at, replaced_by_token_id, last_used_at
        FROM refresh_tokens
        WHERE token_hash = $1
        """,
        token_hash,
    )


async def rotate_refresh_token(database: Database, *, old_token_id: int, new_token_id: int) -> None:
    await database.execute(
        """
        UPDATE refresh_tokens
        SET revoked_at = COALESCE(revoked_at, now()),
            last_used_at = now(),
            replaced_by_token_id = $2
        WHERE id = $1
        """,
        old_token_id,
        new_token_id,
    )


async def revoke_refresh_token_by_hash(database: Database, token_hash: str) -> bool:
    row = await database.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE token_hash = $1
          AND revoked_at IS NULL
        RETURNING id
        """,
        token_hash,
    )
    return row is not None


async def revoke_refresh_token_by_id(database: Database, token_id: int) -> bool:
    row = await database.fetch_one(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE id = $1
          AND revoked_at IS NULL
        RETURNING id
        """,
        token_id,
    )
    return row is not None


async def revoke_all_refresh_tokens_for_user(database: Database, user_id: int) -> None:
    await database.execute(
        """
        UPDATE refresh_tokens
        SET revoked_at = now()
        WHERE user_id = $1
          AND revoked_at IS NULL
        """,
        user_id,
    )
