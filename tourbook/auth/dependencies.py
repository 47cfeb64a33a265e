from collections.abc import Callable, Iterable
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tourbook.auth import jwt_handler
from tourbook.auth.roles import Role, is_authorized, parse_roles
from tourbook.core import config
from tourbook.core.errors import AppError, Forbidden, Unauthenticated
from tourbook.database import get_db
from tourbook.models.user import User
from tourbook.store import Store
from tourbook.util.time import as_utc

security = HTTPBearer(auto_error=False)

NOT_LOGGED_IN = "You are not logged in! Please log in to get access."


@dataclass(frozen=True)
class AuthContext:
    id: int
    role: Role


Gate = Callable[[AuthContext | None], AuthContext]


def extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    # Bearer header for API clients, httpOnly cookie for browsers.
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(config.JWT_COOKIE_NAME) or None


def changed_password_after(user: User, issued_at: int) -> bool:
    changed_at = as_utc(user.password_changed_at)
    if changed_at is None:
        return False
    return issued_at < int(changed_at.timestamp())


def authenticate(db: Session, token: str) -> User:
    claims = jwt_handler.verify_token(token)

    user = Store(db, User).find_by_id(claims.user_id)
    if user is None:
        raise Unauthenticated("The user belonging to this token does no longer exist.")

    if claims.token_version != (user.token_version or 0) or changed_password_after(user, claims.issued_at):
        raise Unauthenticated("User recently changed password! Please log in again.")
    return user


def authenticated_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = extract_token(request, credentials)
    if not token:
        raise Unauthenticated(NOT_LOGGED_IN)
    return authenticate(db, token)


def protect(user: User = Depends(authenticated_user)) -> AuthContext:
    return AuthContext(id=user.id, role=Role(user.role))


def is_logged_in(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User | None:
    """Best-effort identification for personalizing read-only responses."""
    token = extract_token(request, credentials)
    if not token:
        return None
    try:
        return authenticate(db, token)
    except AppError:
        return None


def enforce_roles(context: AuthContext | None, allowed_roles: Iterable[Role | str]) -> AuthContext:
    if context is None:
        raise Unauthenticated(NOT_LOGGED_IN)
    if not is_authorized(context.role, allowed_roles):
        raise Forbidden("You do not have permission to perform this action")
    return context


def require_roles(*roles: Role | str) -> Gate:
    # Misspelled roles fail when the route is wired, not on the first request.
    allowed = parse_roles(roles)

    def gate(context: AuthContext | None) -> AuthContext:
        return enforce_roles(context, allowed)

    return gate


def require(*gates: Gate):
    """Run ``gates`` in order against the authenticated context."""

    def dependency(context: AuthContext = Depends(protect)) -> AuthContext:
        for gate in gates:
            context = gate(context)
        return context

    return dependency


def restrict_to(*roles: Role | str):
    return require(require_roles(*roles))
