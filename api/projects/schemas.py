"""
Pydantic schemas for project and analysis endpoints.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

ChartType = Literal["bar", "line", "pie", "scatter", "bubble", "radar", "polarArea", "doughnut"]


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    is_public: bool = False
    thumbnail_url: str | None = Field(default=None, max_length=2000)


class ProjectUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    is_public: bool | None = None
    thumbnail_url: str | None = Field(default=None, max_length=2000)


class AnalysisCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    query: str = Field(..., min_length=1, max_length=20000)
    chart_type: ChartType = "bar"
    chart_config: dict[str, Any] = Field(default_factory=dict)


class AnalysisUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    query: str | None = Field(default=None, min_length=1, max_length=20000)
    chart_type: ChartType | None = None
    chart_config: dict[str, Any] | None = None
