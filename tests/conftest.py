from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from soundcircle.database import get_db
from soundcircle.dependencies import get_current_user
from soundcircle.main import app
from soundcircle.models import Base
from soundcircle.models.user import User
from soundcircle.services.auth_service import hash_password

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._calls = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self._calls.append((name, args, kwargs))
            return self

        return queue

    async def execute(self):
        results = []
        for name, args, kwargs in self._calls:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._calls = []
        return results


class FakeRedis:
    """In-memory Redis mock for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._store[key] = str(value)
        if ex:
            self._ttls[key] = ex

    async def setex(self, key: str, seconds: int, value: str) -> None:
        await self.set(key, value, ex=seconds)

    async def incr(self, key: str) -> int:
        val = int(self._store.get(key, "0")) + 1
        self._store[key] = str(val)
        return val

    async def expire(self, key: str, seconds: int) -> None:
        self._ttls[key] = seconds

    async def zremrangebyscore(self, key: str, low: float, high: float) -> int:
        zset = self._zsets.setdefault(key, {})
        stale = [m for m, score in zset.items() if low <= score <= high]
        for member in stale:
            del zset[member]
        return len(stale)

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        zset = self._zsets.setdefault(key, {})
        added = len([m for m in mapping if m not in zset])
        zset.update(mapping)
        return added

    async def zcard(self, key: str) -> int:
        return len(self._zsets.get(key, {}))

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


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
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


async def _create_user(db_session: AsyncSession, nick: str, email: str, is_admin: bool = False) -> User:
    user = User(
        nick=nick,
        email=email,
        password_hash=hash_password("TestPass123!"),
        is_admin=is_admin,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "tester", "test@example.com", is_admin=True)


@pytest.fixture
async def second_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "friend", "friend@example.com")


@pytest.fixture
async def third_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "stranger", "stranger@example.com")


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def act_as(test_user: User):
    """Switch the authenticated caller for requests made through ``client``."""

    def _act_as(user: User) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    _act_as(test_user)
    return _act_as


@pytest.fixture
async def anon_client(db_engine, fake_redis) -> AsyncGenerator[AsyncClient, None]:
    """Client with the real bearer-token authentication in place."""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.redis = fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def client(anon_client: AsyncClient, act_as) -> AsyncClient:
    """Client authenticated as ``test_user`` unless ``act_as`` switches it."""
    return anon_client
