"""Password-reset tokens: plaintext goes to the user, only the hash is stored."""

import hashlib
import secrets
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tourbook.core import config
from tourbook.models.user import User
from tourbook.util.time import utcnow


def hash_reset_token(plaintext: str) -> str:
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def create_reset_token(user: User) -> str:
    """Stamp a fresh token hash and expiry on ``user``; the caller commits."""
    plaintext = secrets.token_hex(32)
    user.password_reset_token = hash_reset_token(plaintext)
    user.password_reset_expires = utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRES_MINUTES)
    return plaintext


def clear_reset_token(user: User) -> None:
    user.password_reset_token = None
    user.password_reset_expires = None


def consume_reset_token(db: Session, plaintext: str) -> User | None:
    """Claim a live token and return its owner, or None if it is unknown or expired.

    The claim is a single conditional UPDATE that clears both token columns, so
    of two concurrent requests holding the same token only one gets the user.
    """
    if not plaintext:
        return None

    token_hash = hash_reset_token(plaintext)
    now = utcnow()
    live_token = (
        User.password_reset_token == token_hash,
        User.password_reset_expires > now,
        User.active.is_(True),
    )

    user_id = db.scalar(select(User.id).where(*live_token))
    if user_id is None:
        return None

    claimed = db.execute(
        update(User)
        .where(User.id == user_id, *live_token)
        .values(password_reset_token=None, password_reset_expires=None, version=User.version + 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        db.rollback()
        return None

    db.commit()
    return db.get(User, user_id)
