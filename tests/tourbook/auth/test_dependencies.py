from datetime import timedelta

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from starlette.requests import Request

from tourbook.auth import jwt_handler
from tourbook.auth.dependencies import (
    AuthContext,
    authenticate,
    enforce_roles,
    extract_token,
    is_logged_in,
    require,
    require_roles,
    restrict_to,
)
from tourbook.auth.roles import Role, is_authorized
from tourbook.core.errors import Forbidden, Unauthenticated
from tourbook.util.time import utcnow


def _request(cookie: str | None = None) -> Request:
    headers = [(b'cookie', cookie.encode())] if cookie else []
    return Request({'type': 'http', 'method': 'GET', 'path': '/', 'headers': headers})


@pytest.mark.parametrize(
    ('role', 'allowed', 'expected'),
    [
        (Role.ADMIN, [Role.ADMIN, Role.LEAD_GUIDE], True),
        ('lead-guide', ['admin', 'lead-guide'], True),
        (Role.USER, [Role.ADMIN, Role.LEAD_GUIDE], False),
        (Role.GUIDE, [], False),
        (None, [Role.USER], False),
        ('superuser', [Role.ADMIN], False),
        (Role.ADMIN, ['superuser'], False),
    ],
)
def test_is_authorized(role, allowed, expected: bool) -> None:
    assert is_authorized(role, allowed) is expected


def test_enforce_roles_fails_closed_without_context() -> None:
    with pytest.raises(Unauthenticated):
        enforce_roles(None, [Role.ADMIN])


def test_enforce_roles_rejects_role_outside_allowed_set() -> None:
    with pytest.raises(Forbidden) as exception_info:
        enforce_roles(AuthContext(id=1, role=Role.USER), [Role.ADMIN, Role.LEAD_GUIDE])

    assert exception_info.value.status_code == 403
    assert exception_info.value.message == 'You do not have permission to perform this action'


def test_require_runs_gates_in_order() -> None:
    calls = []

    def first(context):
        calls.append('first')
        return context

    dependency = require(first, require_roles(Role.ADMIN))
    context = AuthContext(id=1, role=Role.ADMIN)

    assert dependency(context) == context
    assert calls == ['first']

    with pytest.raises(Forbidden):
        dependency(AuthContext(id=2, role=Role.GUIDE))


def test_restrict_to_without_context_is_unauthenticated() -> None:
    with pytest.raises(Unauthenticated):
        restrict_to(Role.ADMIN)(None)


def test_restrict_to_rejects_unknown_role_when_wired() -> None:
    with pytest.raises(ValueError):
        restrict_to(Role.ADMIN, 'lead_guide')


def test_extract_token_prefers_bearer_header_over_cookie() -> None:
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials='header-token')

    assert extract_token(_request('jwt=cookie-token'), credentials) == 'header-token'
    assert extract_token(_request('jwt=cookie-token'), None) == 'cookie-token'
    assert extract_token(_request(), None) is None


def test_authenticate_returns_token_owner(db, make_user) -> None:
    user = make_user()

    authenticated = authenticate(db, jwt_handler.issue_token(user.id))

    assert authenticated.id == user.id


def test_authenticate_rejects_token_issued_before_password_change(db, make_user) -> None:
    user = make_user()
    stale_token = jwt_handler.issue_token(user.id, issued_at=utcnow() - timedelta(hours=1))
    user.password = 'new-password-123'
    db.commit()

    with pytest.raises(Unauthenticated) as exception_info:
        authenticate(db, stale_token)

    assert exception_info.value.message == 'User recently changed password! Please log in again.'


def test_authenticate_accepts_token_issued_right_after_password_change(db, make_user) -> None:
    user = make_user()
    user.password = 'new-password-123'
    db.commit()

    assert authenticate(db, jwt_handler.issue_token(user.id, user.token_version)).id == user.id


def test_authenticate_rejects_token_issued_in_the_same_second_as_password_change(db, make_user) -> None:
    user = make_user()
    token = jwt_handler.issue_token(user.id, user.token_version)
    user.password = 'new-password-123'
    db.commit()

    assert user.token_version == 1
    with pytest.raises(Unauthenticated) as exception_info:
        authenticate(db, token)

    assert exception_info.value.message == 'User recently changed password! Please log in again.'


def test_authenticate_rejects_token_of_deactivated_user(db, make_user) -> None:
    user = make_user()
    token = jwt_handler.issue_token(user.id)
    user.active = False
    db.commit()

    with pytest.raises(Unauthenticated) as exception_info:
        authenticate(db, token)

    assert exception_info.value.message == 'The user belonging to this token does no longer exist.'


def test_is_logged_in_swallows_invalid_token(db) -> None:
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials='garbage')

    assert is_logged_in(_request(), credentials, db) is None
    assert is_logged_in(_request(), None, db) is None


def test_is_logged_in_returns_user_for_valid_cookie(db, make_user) -> None:
    user = make_user()
    token = jwt_handler.issue_token(user.id)

    assert is_logged_in(_request(f'jwt={token}'), None, db).id == user.id
