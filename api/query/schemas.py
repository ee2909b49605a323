"""
Query API schemas (request models).
"""

from __future__ import annotations

from pydantic import BaseModel, Field, StrictStr


class QueryRequest(BaseModel):
    # Strict: a number or list in `query` is invalid input, not something to coerce.
    query: StrictStr = Field(..., min_length=1)
