from collections.abc import Iterable
from enum import Enum


class Role(str, Enum):
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


def parse_roles(roles: Iterable[Role | str]) -> tuple[Role, ...]:
    """Convert role names up front; an unknown name raises ValueError."""
    return tuple(Role(role) for role in roles)


def is_authorized(role: Role | str | None, allowed_roles: Iterable[Role | str]) -> bool:
    if role is None:
        return False
    try:
        return Role(role) in parse_roles(allowed_roles)
    except ValueError:
        return False
