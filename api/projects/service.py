"""
Project and saved-analysis business logic.

Visibility rules:
- owners can read and change their projects;
- anyone signed in can read (and run analyses of) a public project;
- a project that is neither is reported as missing, not forbidden.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from core.db import Database
from query import admission
from query import service as query_service
from query.access import CallerIdentity, QueryContext
from query.errors import QueryTargetNotFound
from query.executor import QueryExecutor

from . import repository, schemas

logger = logging.getLogger(__name__)


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found.")


def _can_read(project: dict, user_id: int) -> bool:
    return int(project["user_id"]) == user_id or bool(project.get("is_public", False))


def _admit_for_storage(query: str, **log_fields: int) -> None:
    # Refuse to store a query that could never be run.
    verdict = admission.admit(query)
    if isinstance(verdict, admission.Rejected):
        fields = " ".join(f"{key}={value}" for key, value in log_fields.items())
        logger.warning("analysis_rejected %s rule=%s", fields, verdict.rule)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=verdict.reason)


async def list_projects(database: Database, *, user_id: int, limit: int, offset: int) -> dict:
    projects = await repository.list_projects(database, user_id=user_id, limit=limit, offset=offset)
    return {"projects": projects, "limit": limit, "offset": offset, "count": len(projects)}


async def create_project(database: Database, payload: schemas.ProjectCreateRequest, *, user_id: int) -> dict:
    project = await repository.create_project(
        database,
        user_id=user_id,
        name=payload.name.strip(),
        description=payload.description.strip(),
        is_public=payload.is_public,
        thumbnail_url=payload.thumbnail_url,
    )
    logger.info("project_created project_id=%s user_id=%s", project["id"], user_id)
    return project


async def get_visible_project(database: Database, project_id: int, *, user_id: int) -> dict:
    project = await repository.get_project(database, project_id)
    if project is None or not _can_read(project, user_id):
        raise _not_found("Project")
    return project


async def get_owned_project(database: Database, project_id: int, *, user_id: int) -> dict:
    project = await repository.get_project(database, project_id)
    if project is None or int(project["user_id"]) != user_id:
        raise _not_found("Project")
    return project


async def update_project(
    database: Database,
    project_id: int,
    payload: schemas.ProjectUpdateRequest,
    *,
    user_id: int,
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update.")

    for key in ("name", "description"):
        if isinstance(changes.get(key), str):
            changes[key] = changes[key].strip()

    project = await repository.update_project(database, project_id, user_id=user_id, changes=changes)
    if project is None:
        raise _not_found("Project")
    return project


async def delete_project(database: Database, project_id: int, *, user_id: int) -> dict:
    if not await repository.delete_project(database, project_id, user_id=user_id):
        raise _not_found("Project")
    logger.info("project_deleted project_id=%s user_id=%s", project_id, user_id)
    return {"ok": True, "project_id": project_id}


async def list_analyses(database: Database, project_id: int, *, user_id: int) -> dict:
    await get_visible_project(database, project_id, user_id=user_id)
    analyses = await repository.list_analyses(database, project_id)
    return {"analyses": analyses, "count": len(analyses)}


async def create_analysis(
    database: Database,
    project_id: int,
    payload: schemas.AnalysisCreateRequest,
    *,
    user_id: int,
) -> dict:
    await get_owned_project(database, project_id, user_id=user_id)

    _admit_for_storage(payload.query, project_id=project_id)

    return await repository.create_analysis(
        database,
        project_id=project_id,
        name=payload.name.strip(),
        description=payload.description.strip(),
        query=payload.query,
        chart_type=payload.chart_type,
        chart_config=payload.chart_config,
    )


async def update_analysis(
    database: Database,
    analysis_id: int,
    payload: schemas.AnalysisUpdateRequest,
    *,
    user_id: int,
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update.")

    analysis = await repository.get_analysis_with_project(database, analysis_id)
    if analysis is None or int(analysis["owner_id"]) != user_id:
        raise _not_found("Analysis")

    if changes.get("query") is not None:
        _admit_for_storage(changes["query"], analysis_id=analysis_id)

    for key in ("name", "description"):
        if isinstance(changes.get(key), str):
            changes[key] = changes[key].strip()

    row = await repository.update_analysis(database, analysis_id, user_id=user_id, changes=changes)
    if row is None:
        raise _not_found("Analysis")
    logger.info("analysis_updated analysis_id=%s fields=%s", analysis_id, ",".join(sorted(changes)))
    return row


async def delete_analysis(database: Database, analysis_id: int, *, user_id: int) -> dict:
    if not await repository.delete_analysis(database, analysis_id, user_id=user_id):
        raise _not_found("Analysis")
    return {"ok": True, "analysis_id": analysis_id}


async def run_analysis(
    database: Database,
    analysis_id: int,
    *,
    executor: QueryExecutor,
    caller: CallerIdentity,
) -> dict:
    analysis = await repository.get_analysis_with_project(database, analysis_id)
    if analysis is None:
        raise QueryTargetNotFound("Analysis not found.")

    context = QueryContext(
        source="analysis",
        owner_id=int(analysis["owner_id"]),
        is_public=bool(analysis["is_public"]),
    )
    result = await query_service.run_saved_query(
        str(analysis["query"]),
        executor=executor,
        caller=caller,
        context=context,
    )
    response = query_service.to_response(result)
    response["analysis_id"] = analysis_id
    response["chart_type"] = analysis["chart_type"]
    response["chart_config"] = analysis["chart_config"]
    return response
