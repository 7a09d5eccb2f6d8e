"""테스트 인프라 — 인메모리 SQLite DB, 세션, 시계, httpx 클라이언트 픽스처.

Test infrastructure — In-memory SQLite (aiosqlite) database, session, a
controllable clock, and httpx client fixtures. Every test gets a fresh
database; set TEST_DATABASE_URL to run against another async backend.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from workday_api.api.deps import get_workday_service
from workday_api.database import Base, get_db
from workday_api.main import app
from workday_api.models import *  # noqa: F401,F403 — register all models with metadata
from workday_api.services.workday_service import WorkdayService
from workday_api.utils.jwt import create_access_token

# ---------------------------------------------------------------------------
# 테스트 DB 설정
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# 2026-03-10 10:00 America/Santiago (UTC-3)
T0 = datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)


class FakeClock:
    """테스트용 시계 — Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now: datetime = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now

    def set(self, instant: datetime) -> datetime:
        self.now = instant
        return self.now


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 클라이언트
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진. 매 테스트마다 새 스키마를 생성합니다."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        eng = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

        # pysqlite/aiosqlite의 BEGIN 처리를 끄고 직접 발행 — SAVEPOINT 지원
        # Let SQLAlchemy emit BEGIN itself so begin_nested() savepoints work
        @event.listens_for(eng.sync_engine, "connect")
        def _do_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(eng.sync_engine, "begin")
        def _do_begin(conn):
            conn.exec_driver_sql("BEGIN")
    else:
        eng = create_async_engine(TEST_DATABASE_URL, pool_pre_ping=True)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    """T0에서 멈춰 있는 시계."""
    return FakeClock(T0)


@pytest.fixture
def service(clock: FakeClock) -> WorkdayService:
    """테스트 시계를 사용하는 근무일 서비스."""
    return WorkdayService(clock=clock)


@pytest_asyncio.fixture
async def client(db: AsyncSession, service: WorkdayService) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — DB 세션과 서비스를 오버라이드합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_workday_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def make_token(user_id: str, claim: str = "sub", **extra) -> str:
    """테스트용 JWT 액세스 토큰을 생성합니다."""
    return create_access_token({claim: user_id, **extra})


@pytest.fixture
def user_token() -> str:
    return make_token("user-1")


@pytest.fixture
def auth_header():
    """Authorization 헤더 생성기."""
    def _header(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture
def token_for():
    """사용자 ID로 토큰 생성."""
    return make_token
