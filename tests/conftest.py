import os

os.environ.setdefault("ENV", "testing")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("LOG_DIR", "logs")

import pytest
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from core.exceptions import SessionConflict
from middleware.rate_limiter import limiter
from services.dto import RefreshSession
from services.token_service import TokenService
from utils.deps import get_db, get_alert_sink
from utils.tokens import TokenCodec

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

TEST_SECRET = "unit-test-secret"


class InMemorySessionStore:
    """SessionStore kept in a dict, with the same uniqueness rules as the SQL store."""

    def __init__(self):
        self.sessions: dict[str, RefreshSession] = {}
        self.calls: list[str] = []

    def save(self, session: RefreshSession) -> None:
        self.calls.append("save")
        now = datetime.now(timezone.utc)
        for existing in list(self.sessions.values()):
            if existing.user_id == session.user_id and existing.expires_at <= now:
                del self.sessions[existing.session_id]

        if session.session_id in self.sessions or any(
            s.user_id == session.user_id for s in self.sessions.values()
        ):
            raise SessionConflict()
        self.sessions[session.session_id] = session

    def get_by_id(self, session_id: str) -> RefreshSession | None:
        self.calls.append("get_by_id")
        return self.sessions.get(session_id)

    def delete_by_id(self, session_id: str) -> None:
        self.calls.append("delete_by_id")
        self.sessions.pop(session_id, None)

    def exists_for_user(self, user_id: str) -> bool:
        self.calls.append("exists_for_user")
        now = datetime.now(timezone.utc)
        return any(s.user_id == user_id and s.expires_at > now for s in self.sessions.values())

    def for_user(self, user_id: str) -> list[RefreshSession]:
        return [s for s in self.sessions.values() if s.user_id == user_id]


class UntouchableSessionStore:
    """Fails the test on any access."""

    def _fail(self, *args, **kwargs):
        pytest.fail("session store must not be queried")

    save = get_by_id = delete_by_id = exists_for_user = _fail


class RecordingAlertSink:

    def __init__(self, result: bool = True, error: Exception | None = None):
        self.sent: list[tuple[str, str]] = []
        self.result = result
        self.error = error

    def send(self, subject: str, body: str) -> bool:
        self.sent.append((subject, body))
        if self.error is not None:
            raise self.error
        return self.result


def run_inline(fn, *args, **kwargs):
    fn(*args, **kwargs)


def make_session(user_id="user-1", source_address="10.0.0.1", token_digest="00000000000000ff",
                 session_id="a" * 32, expires_in=timedelta(hours=1)) -> RefreshSession:
    now = datetime.now(timezone.utc)
    return RefreshSession(
        session_id=session_id,
        user_id=user_id,
        token_digest=token_digest,
        source_address=source_address,
        created_at=now,
        expires_at=now + expires_in
    )


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET, access_ttl=timedelta(minutes=15), refresh_ttl=timedelta(hours=24))


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest.fixture
def token_service(codec, memory_store, alert_sink) -> TokenService:
    return TokenService(codec, memory_store, alert_sink, schedule=run_inline)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app_alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest.fixture
async def client(session: Session, app_alert_sink: RecordingAlertSink):
    """
    Yields an HTTP client bound to the test database, calling from 127.0.0.1.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_alert_sink] = lambda: app_alert_sink
    limiter.reset()

    async with AsyncClient(
        transport=ASGITransport(app=app, client=("127.0.0.1", 5000)),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def remote_client(client):
    """
    Second client sharing the app overrides, calling from another address.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app, client=("203.0.113.7", 5000)),
        base_url="http://test"
    ) as ac:
        yield ac
