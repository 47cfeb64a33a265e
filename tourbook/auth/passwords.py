from passlib.context import CryptContext

from tourbook.core import config


_pwd = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__default_rounds=config.PASSWORD_HASH_ROUNDS,
)


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("Please provide a password")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except ValueError:
        return False
