"""Shared test fixtures."""

import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Ensure mock mode is on for tests
os.environ.setdefault("AUTH_MOCK", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-jwt")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./traceaid-test.db")
os.environ.setdefault("S3_BUCKET", "traceaid-test")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test-access-key")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test-secret-key")
os.environ["GATEWAY_SECRET_KEY"] = ""
os.environ["EMAIL_API_URL"] = ""
os.environ["BANK_LIST_URL"] = ""

import traceaid.models  # noqa: E402,F401
from traceaid.core.dependencies import get_db  # noqa: E402
from traceaid.db.base import Base  # noqa: E402
from traceaid.main import app  # noqa: E402
from traceaid.services import storage  # noqa: E402
from traceaid.services.bank_directory import BankDirectory  # noqa: E402
from traceaid.services.notifications import EmailNotifier, Notice  # noqa: E402


class RecordingNotifier(EmailNotifier):
    """Keeps every notice instead of calling the email API."""

    def __init__(self) -> None:
        super().__init__("", "", "no-reply@traceaid.test")
        self.sent: list[Notice] = []

    async def deliver(self, notice: Notice) -> bool:
        self.sent.append(notice)
        return True

    def subjects(self) -> list[str]:
        return [n.subject for n in self.sent]


class FakeBucket:
    """Stands in for the evidence bucket; only ``keys`` exist."""

    def __init__(self) -> None:
        self.keys: set[str] = set()

    def object_exists(self, key: str) -> bool:
        return key in self.keys


@pytest.fixture
async def engine(tmp_path):
    """Fresh schema per test: TEST_DATABASE_URL if set, else a temp SQLite file."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'traceaid.db'}"
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Async DB session for direct service calls and assertions."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def bucket(monkeypatch) -> FakeBucket:
    fake = FakeBucket()
    monkeypatch.setattr(storage, "object_exists", fake.object_exists)
    return fake


@pytest.fixture
async def client(
    session_factory, notifier: RecordingNotifier, bucket: FakeBucket
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP test client for the FastAPI app.

    ASGITransport does not run the lifespan, so the app-scoped services are
    installed here.
    """

    async def _test_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _test_get_db
    app.state.notifier = notifier
    app.state.bank_directory = BankDirectory("", 86400)
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_db, None)
