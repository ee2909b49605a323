"""
Who may run a query.

Routes resolve a `CallerIdentity` from the request (see
`auth.dependencies.get_query_caller`) and ask it whether a `QueryContext` may
run before anything is parsed or executed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol, runtime_checkable

QuerySource = Literal["playground", "analysis"]


@dataclass(frozen=True)
class QueryContext:
    source: QuerySource = "playground"
    # Set when the query belongs to a saved analysis.
    owner_id: int | None = None
    is_public: bool = False


@runtime_checkable
class CallerIdentity(Protocol):
    @property
    def user_id(self) -> int | None: ...

    def is_authorized(self, context: QueryContext) -> bool: ...


@dataclass(frozen=True)
class AuthenticatedCaller:
    user: dict[str, Any]

    @property
    def user_id(self) -> int | None:
        return int(self.user["id"])

    def is_authorized(self, context: QueryContext) -> bool:
        if not bool(self.user.get("is_active", False)):
            return False
        if context.owner_id is None or context.is_public:
            return True
        return context.owner_id == self.user_id


@dataclass(frozen=True)
class AnonymousCaller:
    allow_anonymous: bool = False

    @property
    def user_id(self) -> int | None:
        return None

    def is_authorized(self, context: QueryContext) -> bool:
        # Saved analyses always need an identity, even on an open playground.
        return self.allow_anonymous and context.owner_id is None
