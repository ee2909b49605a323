"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from core.db import Database, get_database

from . import dependencies, schemas, service

router = APIRouter(prefix="/auth")


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/register", status_code=201)
async def register(
    payload: schemas.RegisterRequest,
    request: Request,
    user_agent: str | None = Header(default=None),
    database: Database = Depends(get_database),
) -> schemas.AuthResponse:
    return await service.register(
        database,
        payload,
        user_agent=user_agent,
        ip_address=_client_ip(request),
    )


@router.post("/login")
async def login(
    payload: schemas.LoginRequest,
    request: Request,
    user_agent: str | None = Header(default=None),
    database: Database = Depends(get_database),
) -> schemas.AuthResponse:
    return await service.login(
        database,
        payload,
        user_agent=user_agent,
        ip_address=_client_ip(request),
    )


@router.post("/refresh")
async def refresh(
    payload: schemas.RefreshRequest,
    request: Request,
    user_agent: str | None = Header(default=None),
    database: Database = Depends(get_database),
) -> schemas.TokenPairResponse:
    return await service.refresh_tokens(
        database,
        payload,
        user_agent=user_agent,
        ip_address=_client_ip(request),
    )


@router.post("/logout")
async def logout(
    payload: schemas.LogoutRequest,
    current_user: dict = Depends(dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.logout(database, payload, current_user_id=int(current_user["id"]))


@router.get("/me")
async def me(
    current_user: dict = Depends(dependencies.get_current_user),
) -> schemas.UserResponse:
    return service.me(current_user)
