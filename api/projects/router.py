"""
Project and saved-analysis API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from auth import dependencies as auth_dependencies
from core.db import Database, get_database
from query.access import CallerIdentity
from query.executor import QueryExecutor
from query.router import get_query_executor

from . import schemas, service

router = APIRouter()


@router.get("/projects")
async def list_projects(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.list_projects(
        database,
        user_id=int(current_user["id"]),
        limit=limit,
        offset=offset,
    )


@router.post("/projects", status_code=201)
async def create_project(
    request: schemas.ProjectCreateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.create_project(database, request, user_id=int(current_user["id"]))


@router.get("/projects/{project_id}")
async def get_project(
    project_id: int,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.get_visible_project(database, project_id, user_id=int(current_user["id"]))


@router.patch("/projects/{project_id}")
async def update_project(
    project_id: int,
    request: schemas.ProjectUpdateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.update_project(
        database,
        project_id,
        request,
        user_id=int(current_user["id"]),
    )


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: int,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.delete_project(database, project_id, user_id=int(current_user["id"]))


@router.get("/projects/{project_id}/analyses")
async def list_analyses(
    project_id: int,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.list_analyses(database, project_id, user_id=int(current_user["id"]))


@router.post("/projects/{project_id}/analyses", status_code=201)
async def create_analysis(
    project_id: int,
    request: schemas.AnalysisCreateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.create_analysis(
        database,
        project_id,
        request,
        user_id=int(current_user["id"]),
    )


@router.patch("/analyses/{analysis_id}")
async def update_analysis(
    analysis_id: int,
    request: schemas.AnalysisUpdateRequest,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.update_analysis(
        database,
        analysis_id,
        request,
        user_id=int(current_user["id"]),
    )


@router.delete("/analyses/{analysis_id}")
async def delete_analysis(
    analysis_id: int,
    current_user: dict = Depends(auth_dependencies.get_current_user),
    database: Database = Depends(get_database),
) -> dict:
    return await service.delete_analysis(database, analysis_id, user_id=int(current_user["id"]))


@router.post("/analyses/{analysis_id}/run")
async def run_analysis(
    analysis_id: int,
    caller: CallerIdentity = Depends(auth_dependencies.get_query_caller),
    executor: QueryExecutor = Depends(get_query_executor),
    database: Database = Depends(get_database),
) -> dict:
    """
    Run a saved analysis. Errors, a missing analysis included, use the query
    endpoint's `{"error": ...}` shape.
    """
    return await service.run_analysis(database, analysis_id, executor=executor, caller=caller)
