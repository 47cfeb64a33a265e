from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from tourbook.core import config
from tourbook.core.errors import Fatal, InvalidTokenError, TokenExpiredError


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    issued_at: int
    token_version: int


def issue_token(
    user_id: int | str,
    token_version: int = 0,
    expires_minutes: int | None = None,
    issued_at: datetime | None = None,
) -> str:
    if not config.JWT_SECRET_KEY:
        raise Fatal("JWT signing key is not configured.")

    issued = issued_at or datetime.now(timezone.utc)
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    payload = {
        "sub": str(user_id),
        # Bumped on every password change; older tokens stop matching.
        "ver": int(token_version),
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(minutes=expire_minutes)).timestamp()),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    if not token:
        raise InvalidTokenError()
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub", "ver", "iat", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError() from exc

    try:
        return TokenClaims(
            user_id=int(payload["sub"]),
            issued_at=int(payload["iat"]),
            token_version=int(payload["ver"]),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidTokenError() from exc
