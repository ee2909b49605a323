"""
Environment-driven settings shared by the API.

Every accessor reads the environment on call, so tests can monkeypatch
variables without reloading modules.
"""

from __future__ import annotations

import os

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


def db_pool_min_size() -> int:
    return max(0, _env_int("DB_POOL_MIN_SIZE", 1))


def db_pool_max_size() -> int:
    return max(1, _env_int("DB_POOL_MAX_SIZE", 5))


def db_command_timeout_s() -> float:
    return _env_float("DB_COMMAND_TIMEOUT_S", 30.0)


def db_acquire_timeout_s() -> float:
    return _env_float("DB_ACQUIRE_TIMEOUT_S", 10.0)


def query_auth_required() -> bool:
    # The public playground can be opened up with QUERY_AUTH_REQUIRED=false.
    return _env_bool("QUERY_AUTH_REQUIRED", True)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip() or DEFAULT_CORS_ORIGINS
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def log_json() -> bool:
    return _env_bool("LOG_JSON", False)
