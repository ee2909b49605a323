"""
Password hashing and token helpers.

Access tokens are short-lived HS256 JWTs; refresh tokens are opaque random
strings of which only a SHA-256 hash is stored.
"""

from __future__ import annotations

import hashlib
import os
import secrets
import time
from dataclasses import dataclass

import bcrypt
import jwt

TOKEN_AUDIENCE = "sql-playground"
DEV_JWT_SECRET = "dev-change-this-secret"


class AuthSecurityError(RuntimeError):
    pass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AccessClaims:
    user_id: int
    email: str
    expires_at: int


def jwt_secret() -> str:
    # Development default only; set JWT_SECRET in any shared environment.
    return os.environ.get("JWT_SECRET", DEV_JWT_SECRET).strip() or DEV_JWT_SECRET


def jwt_algorithm() -> str:
    return os.environ.get("JWT_ALG", "HS256").strip() or "HS256"


def access_token_expire_minutes() -> int:
    return _env_int("ACCESS_TOKEN_EXPIRE_MIN", 15)


def refresh_token_expire_days() -> int:
    return _env_int("REFRESH_TOKEN_EXPIRE_DAYS", 30)


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def build_access_token(*, user_id: int, email: str, now: int | None = None) -> str:
    issued_at = int(time.time()) if now is None else now
    payload = {
        "sub": str(user_id),
        "email": email,
        "type": "access",
        "aud": TOKEN_AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + access_token_expire_minutes() * 60,
    }
    return jwt.encode(payload, jwt_secret(), algorithm=jwt_algorithm())


def decode_access_token(token: str) -> AccessClaims:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(
            raw,
            jwt_secret(),
            algorithms=[jwt_algorithm()],
            audience=TOKEN_AUDIENCE,
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthSecurityError("Access token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    if str(payload.get("type") or "").strip().lower() != "access":
        raise AuthSecurityError("Token is not an access token.")

    subject = str(payload.get("sub") or "").strip()
    if not subject.isdigit():
        raise AuthSecurityError("Invalid access token subject.")

    return AccessClaims(
        user_id=int(subject),
        email=str(payload.get("email") or ""),
        expires_at=int(payload["exp"]),
    )


def build_refresh_token() -> str:
    return secrets.token_urlsafe(48)


def hash_refresh_token(raw_refresh_token: str) -> str:
    token = (raw_refresh_token or "").encode("utf-8")
    if not token:
        raise AuthSecurityError("Refresh token is empty.")
    return hashlib.sha256(token).hexdigest()
