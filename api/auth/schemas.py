"""
Auth API schemas (request/response models).

Emails are normalized (trimmed, lowercased) at the edge, matching the
case-insensitive unique index on `users.email`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _normalize_email(value: str) -> str:
    email = value.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or "@" in domain or any(ch.isspace() for ch in email):
        raise ValueError("Enter a valid email address.")
    return email


class _Credentials(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        return _normalize_email(value)


class RegisterRequest(_Credentials):
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(default="", max_length=200)

    @field_validator("full_name")
    @classmethod
    def _full_name(cls, value: str) -> str:
        return value.strip()


class LoginRequest(_Credentials):
    pass


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=20)


class LogoutRequest(BaseModel):
    # Without a token, all sessions of the authenticated user are revoked.
    refresh_token: str | None = Field(default=None, min_length=20)


class UserResponse(BaseModel):
    """Public view of a `users` row (see `repository.USER_COLUMNS`)."""

    id: int
    email: str
    full_name: str = ""
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserResponse:
        return cls(
            id=int(row["id"]),
            email=str(row["email"]),
            full_name=str(row.get("full_name") or ""),
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(BaseModel):
    user: UserResponse
    tokens: TokenPairResponse
