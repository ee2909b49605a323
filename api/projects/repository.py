"""
Project and saved-analysis persistence (raw SQL).

`chart_config` is stored as jsonb and passed as a JSON string, since asyncpg
has no default codec for json types.
"""

from __future__ import annotations

import json
from typing import Any

from core.db import Database

PROJECT_COLUMNS = "id, user_id, name, description, is_public, thumbnail_url, created_at, updated_at"
ANALYSIS_COLUMNS = (
    "id, project_id, name, description, query, chart_type, chart_config, created_at, updated_at"
)


def _decode_analysis(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    config = row.get("chart_config")
    if isinstance(config, str):
        row["chart_config"] = json.loads(config) if config else {}
    return row


async def list_projects(database: Database, *, user_id: int, limit: int = 100, offset: int = 0) -> list[dict]:
    return await database.fetch_all(
        f"""
        SELECT {PROJECT_COLUMNS}
        FROM projects
        WHERE user_id = $1
        ORDER BY created_at DESC, id DESC
        LIMIT $2 OFFSET $3
        """,
        user_id,
        limit,
        offset,
    )


async def get_project(database: Database, project_id: int) -> dict | None:
    return await database.fetch_one(
        f"""
        SELECT {PROJECT_COLUMNS}
        FROM projects
        WHERE id = $1
        """,
        project_id,
    )


async def create_project(
    database: Database,
    *,
    user_id: int,
    name: str,
    description: str,
    is_public: bool,
    thumbnail_url: str | None,
) -> dict:
    row = await database.fetch_one(
        f"""
        INSERT INTO projects (user_id, name, description, is_public, thumbnail_url)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING {PROJECT_COLUMNS}
        """,
        user_id,
        name,
        description,
        is_public,
        thumbnail_url,
    )
    if row is None:
        raise RuntimeError("Failed to create project.")
    return row


async def update_project(
    database: Database,
    project_id: int,
    *,
    user_id: int,
    changes: dict[str, Any],
) -> dict | None:
    """
    Apply a partial update. Only fields present in `changes` are touched;
    NULL parameters keep the stored value.
    """
    return await database.fetch_one(
        f"""
        UPDATE projects
        SET name = COALESCE($3, name),
            description = COALESCE($4, description),
            is_public = COALESCE($5, is_public),
            thumbnail_url = CASE WHEN $6 THEN $7 ELSE thumbnail_url END,
            updated_at = now()
        WHERE id = $1
          AND user_id = $2
        RETURNING {PROJECT_COLUMNS}
        """,
        project_id,
        user_id,
        changes.get("name"),
        changes.get("description"),
        changes.get("is_public"),
        "thumbnail_url" in changes,
        changes.get("thumbnail_url"),
    )


async def delete_project(database: Database, project_id: int, *, user_id: int) -> bool:
    row = await database.fetch_one(
        """
        DELETE FROM projects
        WHERE id = $1
          AND user_id = $2
        RETURNING id
        """,
        project_id,
        user_id,
    )
    return row is not None


async def list_analyses(database: Database, project_id: int) -> list[dict]:
    rows = await database.fetch_all(
        f"""
        SELECT {ANALYSIS_COLUMNS}
        FROM analyses
        WHERE project_id = $1
        ORDER BY created_at DESC, id DESC
        """,
        project_id,
    )
    return [_decode_analysis(row) for row in rows]


async def create_analysis(
    database: Database,
    *,
    project_id: int,
    name: str,
    description: str,
    query: str,
    chart_type: str,
    chart_config: dict[str, Any],
) -> dict:
    row = await database.fetch_one(
        f"""
        INSERT INTO analyses (project_id, name, description, query, chart_type, chart_config)
        VALUES ($1, $2, $3, $4, $5, $6::jsonb)
        RETURNING {ANALYSIS_COLUMNS}
        """,
        project_id,
        name,
        description,
        query,
        chart_type,
        json.dumps(chart_config),
    )
    if row is None:
        raise RuntimeError("Failed to create analysis.")
    return _decode_analysis(row)


async def get_analysis_with_project(database: Database, analysis_id: int) -> dict | None:
    row = await database.fetch_one(
        """
        SELECT a.id, a.project_id, a.name, a.description, a.query, a.chart_type,
               a.chart_config, a.created_at, a.updated_at,
               p.user_id AS owner_id, p.is_public
        FROM analyses a
        JOIN projects p ON p.id = a.project_id
        WHERE a.id = $1
        """,
        analysis_id,
    )
    return _decode_analysis(row)


async def update_analysis(
    database: Database,
    analysis_id: int,
    *,
    user_id: int,
    changes: dict[str, Any],
) -> dict | None:
    """
    Partial update, limited to analyses in projects owned by `user_id`.
    NULL parameters keep the stored value.
    """
    config = changes.get("chart_config")
    row = await database.fetch_one(
        """
        UPDATE analyses a
        SET name = COALESCE($3, a.name),
            description = COALESCE($4, a.description),
            query = COALESCE($5, a.query),
            chart_type = COALESCE($6, a.chart_type),
            chart_config = COALESCE($7::jsonb, a.chart_config),
            updated_at = now()
        FROM projects p
        WHERE a.id = $1
          AND p.id = a.project_id
          AND p.user_id = $2
        RETURNING a.id, a.project_id, a.name, a.description, a.query, a.chart_type,
                  a.chart_config, a.created_at, a.updated_at
        """,
        analysis_id,
        user_id,
        changes.get("name"),
        changes.get("description"),
        changes.get("query"),
        changes.get("chart_type"),
        json.dumps(config) if config is not None else None,
    )
    return _decode_analysis(row)


async def delete_analysis(database: Database, analysis_id: int, *, user_id: int) -> bool:
    row = await database.fetch_one(
        """
        DELETE FROM analyses a
        USING projects p
        WHERE a.id = $1
          AND p.id = a.project_id
          AND p.user_id = $2
        RETURNING a.id
        """,
        analysis_id,
        user_id,
    )
    return row is not None
