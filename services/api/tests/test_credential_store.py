from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from hazel_api.models.enums import TokenScope
from hazel_api.models.user import User, UserToken
from hazel_api.services.credential_store import (
    delete_token,
    delete_tokens_for_user,
    find_token_owner,
    purge_expired_tokens,
    put_token,
)
from hazel_api.services.errors import NotFoundError
from hazel_api.services.local_auth import hash_token


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    for table in (User.__table__, UserToken.__table__):
        table.create(engine)
    local_session = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    db = local_session()
    try:
        yield db
    finally:
        db.close()


def _create_user(db: Session, *, email: str) -> User:
    user = User(id=uuid4(), name=email.split("@")[0], email=email, password_hash="x", verified=False)
    db.add(user)
    db.commit()
    return user


def _in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


def test_find_token_owner_matches_hash_scope_and_email(db_session: Session):
    user = _create_user(db_session, email="alice@example.com")
    put_token(
        db_session,
        token_hash=hash_token("123456"),
        user_id=user.id,
        scope=TokenScope.VERIFICATION,
        expires_at=_in(15),
    )

    owner = find_token_owner(
        db_session,
        token_hash=hash_token("123456"),
        scope=TokenScope.VERIFICATION,
        email="alice@example.com",
    )
    assert owner.id == user.id

    with pytest.raises(NotFoundError):
        find_token_owner(
            db_session,
            token_hash=hash_token("123456"),
            scope=TokenScope.AUTHENTICATION,
            email="alice@example.com",
        )
    with pytest.raises(NotFoundError):
        find_token_owner(
            db_session,
            token_hash=hash_token("123456"),
            scope=TokenScope.VERIFICATION,
            email="bob@example.com",
        )


def test_expired_record_is_not_found(db_session: Session):
    user = _create_user(db_session, email="alice@example.com")
    put_token(
        db_session,
        token_hash=hash_token("654321"),
        user_id=user.id,
        scope=TokenScope.VERIFICATION,
        expires_at=_in(-1),
    )

    with pytest.raises(NotFoundError):
        find_token_owner(
            db_session,
            token_hash=hash_token("654321"),
            scope=TokenScope.VERIFICATION,
            email="alice@example.com",
        )


def test_multiple_records_per_user_and_scope_coexist(db_session: Session):
    user = _create_user(db_session, email="alice@example.com")
    for raw in ("device-a", "device-b"):
        put_token(
            db_session,
            token_hash=hash_token(raw),
            user_id=user.id,
            scope=TokenScope.AUTHENTICATION,
            expires_at=_in(60),
        )

    count = db_session.execute(select(func.count()).select_from(UserToken)).scalar_one()
    assert count == 2


def test_delete_token_is_idempotent(db_session: Session):
    user = _create_user(db_session, email="alice@example.com")
    put_token(
        db_session,
        token_hash=hash_token("refresh"),
        user_id=user.id,
        scope=TokenScope.AUTHENTICATION,
        expires_at=_in(60),
    )

    assert delete_token(db_session, token_hash=hash_token("refresh"), scope=TokenScope.AUTHENTICATION) == 1
    assert delete_token(db_session, token_hash=hash_token("refresh"), scope=TokenScope.AUTHENTICATION) == 0


def test_delete_tokens_for_user_filters_by_scope(db_session: Session):
    user = _create_user(db_session, email="alice@example.com")
    put_token(db_session, token_hash=hash_token("a"), user_id=user.id, scope=TokenScope.VERIFICATION, expires_at=_in(5))
    put_token(db_session, token_hash=hash_token("b"), user_id=user.id, scope=TokenScope.AUTHENTICATION, expires_at=_in(5))

    assert delete_tokens_for_user(db_session, user_id=user.id, scope=TokenScope.VERIFICATION) == 1
    remaining = db_session.execute(select(UserToken.scope)).scalars().all()
    assert remaining == [TokenScope.AUTHENTICATION]


def test_purge_expired_tokens_keeps_live_records(db_session: Session):
    user = _create_user(db_session, email="alice@example.com")
    put_token(db_session, token_hash=hash_token("old"), user_id=user.id, scope=TokenScope.VERIFICATION, expires_at=_in(-10))
    put_token(db_session, token_hash=hash_token("new"), user_id=user.id, scope=TokenScope.VERIFICATION, expires_at=_in(10))

    assert purge_expired_tokens(db_session) == 1
    remaining = db_session.execute(select(UserToken.hash)).scalars().all()
    assert remaining == [hash_token("new")]


def test_same_digest_for_different_users_is_stored_and_deleted_per_owner(db_session: Session):
    alice = _create_user(db_session, email="alice@example.com")
    bob = _create_user(db_session, email="bob@example.com")
    for user in (alice, bob):
        put_token(
            db_session,
            token_hash=hash_token("123456"),
            user_id=user.id,
            scope=TokenScope.VERIFICATION,
            expires_at=_in(15),
        )

    assert (
        find_token_owner(
            db_session,
            token_hash=hash_token("123456"),
            scope=TokenScope.VERIFICATION,
            email="bob@example.com",
        ).id
        == bob.id
    )
    assert (
        delete_token(
            db_session,
            token_hash=hash_token("123456"),
            scope=TokenScope.VERIFICATION,
            user_id=alice.id,
        )
        == 1
    )
    remaining = db_session.execute(select(UserToken.user_id)).scalars().all()
    assert remaining == [bob.id]
