from datetime import timedelta

from tourbook.auth.reset_tokens import consume_reset_token, create_reset_token, hash_reset_token
from tourbook.util.time import as_utc, utcnow


def test_create_reset_token_stores_only_the_hash(db, make_user) -> None:
    user = make_user()

    plaintext = create_reset_token(user)
    db.commit()
    db.refresh(user)

    assert len(plaintext) == 64
    assert user.password_reset_token != plaintext
    assert user.password_reset_token == hash_reset_token(plaintext)
    remaining = as_utc(user.password_reset_expires) - utcnow()
    assert timedelta(minutes=9) < remaining <= timedelta(minutes=10)


def test_consume_reset_token_succeeds_exactly_once(db, make_user) -> None:
    user = make_user()
    plaintext = create_reset_token(user)
    db.commit()

    claimed = consume_reset_token(db, plaintext)

    assert claimed is not None
    assert claimed.id == user.id
    assert claimed.password_reset_token is None
    assert claimed.password_reset_expires is None
    assert consume_reset_token(db, plaintext) is None


def test_consume_reset_token_rejects_expired_token(db, make_user) -> None:
    user = make_user()
    plaintext = create_reset_token(user)
    user.password_reset_expires = utcnow() - timedelta(seconds=1)
    db.commit()

    assert consume_reset_token(db, plaintext) is None


def test_consume_reset_token_rejects_unknown_and_blank_tokens(db, make_user) -> None:
    user = make_user()
    create_reset_token(user)
    db.commit()

    assert consume_reset_token(db, 'f' * 64) is None
    assert consume_reset_token(db, '') is None


def test_consume_reset_token_ignores_deactivated_accounts(db, make_user) -> None:
    user = make_user()
    plaintext = create_reset_token(user)
    user.active = False
    db.commit()

    assert consume_reset_token(db, plaintext) is None
