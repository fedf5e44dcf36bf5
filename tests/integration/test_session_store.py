from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from core.exceptions import SessionConflict, SessionStoreError
from models.refresh_sessions import RefreshSessionRecord
from services.session_store import SqlAlchemySessionStore
from tests.conftest import make_session


def test_save_and_get(session):
    store = SqlAlchemySessionStore(session)
    saved = make_session(session_id="a" * 32, user_id="user-1")

    store.save(saved)

    loaded = store.get_by_id("a" * 32)
    assert loaded is not None
    assert loaded.user_id == "user-1"
    assert loaded.token_digest == saved.token_digest
    assert loaded.source_address == saved.source_address
    assert loaded.expires_at.tzinfo is not None
    assert abs(loaded.expires_at - saved.expires_at) < timedelta(seconds=1)


def test_get_missing_returns_none(session):
    store = SqlAlchemySessionStore(session)
    assert store.get_by_id("missing") is None


def test_delete_is_idempotent(session):
    store = SqlAlchemySessionStore(session)
    store.save(make_session(session_id="a" * 32))

    store.delete_by_id("a" * 32)
    store.delete_by_id("a" * 32)
    store.delete_by_id("never-existed")

    assert store.get_by_id("a" * 32) is None


def test_exists_for_user(session):
    store = SqlAlchemySessionStore(session)
    assert store.exists_for_user("user-1") is False

    store.save(make_session(user_id="user-1"))

    assert store.exists_for_user("user-1") is True
    assert store.exists_for_user("user-2") is False


def test_expired_session_is_not_live(session):
    store = SqlAlchemySessionStore(session)
    store.save(make_session(user_id="user-1", expires_in=timedelta(seconds=-10)))

    assert store.exists_for_user("user-1") is False


def test_second_session_for_user_rejected(session):
    store = SqlAlchemySessionStore(session)
    store.save(make_session(session_id="a" * 32, user_id="user-1"))

    with pytest.raises(SessionConflict):
        store.save(make_session(session_id="b" * 32, user_id="user-1"))

    rows = session.query(RefreshSessionRecord).filter(RefreshSessionRecord.user_id == "user-1").all()
    assert [row.session_id for row in rows] == ["a" * 32]


def test_duplicate_session_id_rejected(session):
    store = SqlAlchemySessionStore(session)
    store.save(make_session(session_id="a" * 32, user_id="user-1"))

    with pytest.raises(SessionConflict):
        store.save(make_session(session_id="a" * 32, user_id="user-2"))


def test_save_replaces_stale_row_for_user(session):
    store = SqlAlchemySessionStore(session)
    store.save(make_session(session_id="a" * 32, user_id="user-1", expires_in=timedelta(seconds=-10)))

    store.save(make_session(session_id="b" * 32, user_id="user-1"))

    assert store.get_by_id("a" * 32) is None
    assert store.get_by_id("b" * 32) is not None


def test_store_usable_after_conflict(session):
    store = SqlAlchemySessionStore(session)
    store.save(make_session(session_id="a" * 32, user_id="user-1"))

    with pytest.raises(SessionConflict):
        store.save(make_session(session_id="b" * 32, user_id="user-1"))

    store.save(make_session(session_id="c" * 32, user_id="user-2"))
    assert store.exists_for_user("user-2") is True


@pytest.fixture
def tableless_session():
    # No tables created, so every query fails inside SQLAlchemy
    engine = create_engine("sqlite://")
    db = sessionmaker(bind=engine)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.mark.parametrize("call", [
    lambda store: store.save(make_session()),
    lambda store: store.get_by_id("a" * 32),
    lambda store: store.delete_by_id("a" * 32),
    lambda store: store.exists_for_user("user-1"),
])
def test_database_failures_become_store_errors(tableless_session, call):
    store = SqlAlchemySessionStore(tableless_session)

    with pytest.raises(SessionStoreError) as exc_info:
        call(store)

    assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
