"""Pytest fixtures: file-backed sqlite DB shared by sync and async sessions, scripted AI, client."""
import os
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ["MAILBOX_MODE"] = "sample"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from jobassist.ai_client import AIResponse, get_ai_client
from jobassist.database import enable_sqlite_savepoints, get_db, get_sync_db
from jobassist.dependencies import get_mailbox_gateway
from jobassist.errors import AIProviderError
from jobassist.mailbox import SampleGateway
from jobassist.main import app
from jobassist.models import Base


class FakeAI:
    """Stands in for AIClient: returns queued responses in order, records every prompt."""

    model = "fake-model"

    def __init__(self):
        self.queue = []
        self.calls = []

    def respond(self, text: str, input_tokens: int = 100, output_tokens: int = 50):
        self.queue.append(AIResponse(
            text=text,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        ))
        return self

    def fail(self, message: str = "provider unavailable"):
        self.queue.append(AIProviderError(message))
        return self

    def generate(self, prompt, **kwargs):
        self.calls.append({"prompt": prompt, **kwargs})
        if not self.queue:
            raise AIProviderError("no scripted response")
        item = self.queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def db_urls(tmp_path):
    """
    Use a file-based sqlite DB so sync sessions (tests, write endpoints) and
    async app sessions (read endpoints) see the same data.
    """
    db_path = tmp_path / "test.db"
    sync_url = f"sqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"
    return sync_url, async_url


@pytest.fixture
def db_engine(db_urls):
    sync_url, _ = db_urls
    engine = create_engine(sync_url, connect_args={"check_same_thread": False}, poolclass=NullPool)

    @event.listens_for(engine, "connect")
    def _wal(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.close()

    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def sample_gateway():
    return SampleGateway()


@pytest.fixture
def client(db_urls, session_factory, fake_ai, sample_gateway):
    _, async_url = db_urls
    async_engine = create_async_engine(
        async_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with AsyncSessionLocal() as session:
            yield session

    def override_get_sync_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_db] = override_get_sync_db
    app.dependency_overrides[get_ai_client] = lambda: fake_ai
    app.dependency_overrides[get_mailbox_gateway] = lambda: sample_gateway
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
