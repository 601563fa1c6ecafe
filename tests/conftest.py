import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import get_db
from app.dependencies import get_current_user
from app.main import app
from app.models import Base
from app.models.friendship import Friendship
from app.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)
        if ex:
            self._ttls[key] = ex

    async def incr(self, key: str) -> int:
        val = int(self._store.get(key, "0")) + 1
        self._store[key] = str(val)
        return val

    async def expire(self, key: str, seconds: int) -> None:
        self._ttls[key] = seconds

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


async def _make_user(db_session: AsyncSession, email: str, display_name: str) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        display_name=display_name,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "test@example.com", "Test User")


@pytest.fixture
async def second_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "friend@example.com", "Friend User")


@pytest.fixture
async def third_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "third@example.com", "Third User")


@pytest.fixture
def make_friendship(db_session: AsyncSession):
    """Insert a friendship row directly, in canonical order."""

    async def _make(requester: User, recipient: User, status: str = "accepted") -> Friendship:
        uid1, uid2 = (min(requester.id, recipient.id), max(requester.id, recipient.id))
        friendship = Friendship(
            user_id_1=uid1,
            user_id_2=uid2,
            requester_id=requester.id,
            status=status,
        )
        db_session.add(friendship)
        await db_session.commit()
        await db_session.refresh(friendship)
        return friendship

    return _make


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def act_as():
    """Switch the authenticated user for subsequent client requests."""

    def _act_as(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    return _act_as


@pytest.fixture
async def client(session_factory, fake_redis: FakeRedis, test_user: User) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_current_user():
        return test_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.state.redis = fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
