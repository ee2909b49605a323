from __future__ import annotations

import pytest

from query.access import AnonymousCaller, AuthenticatedCaller, CallerIdentity, QueryContext
from query.errors import QueryUnauthorized
from query.service import authorize

PLAYGROUND = QueryContext()
OWN_ANALYSIS = QueryContext(source="analysis", owner_id=1)
FOREIGN_PRIVATE = QueryContext(source="analysis", owner_id=2)
FOREIGN_PUBLIC = QueryContext(source="analysis", owner_id=2, is_public=True)


def _user(**overrides) -> AuthenticatedCaller:
    return AuthenticatedCaller(user={"id": 1, "is_active": True, **overrides})


@pytest.mark.parametrize(
    ("context", "expected"),
    [
        (PLAYGROUND, True),
        (OWN_ANALYSIS, True),
        (FOREIGN_PRIVATE, False),
        (FOREIGN_PUBLIC, True),
    ],
)
def test_authenticated_caller(context: QueryContext, expected: bool) -> None:
    assert _user().is_authorized(context) is expected


def test_inactive_user_is_never_authorized() -> None:
    caller = _user(is_active=False)

    assert not caller.is_authorized(PLAYGROUND)
    assert not caller.is_authorized(OWN_ANALYSIS)


@pytest.mark.parametrize(
    ("allow_anonymous", "context", "expected"),
    [
        (False, PLAYGROUND, False),
        (True, PLAYGROUND, True),
        (True, FOREIGN_PUBLIC, False),
        (True, OWN_ANALYSIS, False),
    ],
)
def test_anonymous_caller(allow_anonymous: bool, context: QueryContext, expected: bool) -> None:
    assert AnonymousCaller(allow_anonymous=allow_anonymous).is_authorized(context) is expected


def test_callers_satisfy_the_identity_protocol() -> None:
    assert isinstance(_user(), CallerIdentity)
    assert isinstance(AnonymousCaller(), CallerIdentity)
    assert _user().user_id == 1
    assert AnonymousCaller().user_id is None


def test_authorize_raises_for_denied_callers() -> None:
    with pytest.raises(QueryUnauthorized) as excinfo:
        authorize(AnonymousCaller(), PLAYGROUND)

    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "Unauthorized"
