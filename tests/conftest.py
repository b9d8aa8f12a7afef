import os

# No span export during tests; must be set before postfeed.config is imported
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "")

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from postfeed.auth import create_access_token
from postfeed.clients.redis_client import get_cache
from postfeed.database import Base, get_db
from postfeed.main import app
from postfeed.models import Post, User
from postfeed.schemas import UserPublic
from postfeed.services.feed import FeedService
from postfeed.services.mutations import MutationService
from postfeed.store import PostStore

FEED_KEY = "posts"
FEED_TTL = 3600
T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryCache:
    """CacheStore fake with TTL expiry on a manually advanced clock."""

    def __init__(self) -> None:
        self.entries: dict[str, tuple[bytes, float]] = {}
        self.now = 0.0
        self.calls: list[tuple[str, str]] = []

    async def get(self, key: str) -> Optional[bytes]:
        self.calls.append(("get", key))
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.now >= expires_at:
            del self.entries[key]
            return None
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.calls.append(("set", key))
        self.entries[key] = (value, self.now + ttl_seconds)

    async def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        self.entries.pop(key, None)

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def store(db_session):
    return PostStore(db_session)


@pytest.fixture
def feed(store, cache):
    return FeedService(store, cache, key=FEED_KEY, ttl_seconds=FEED_TTL)


@pytest.fixture
def mutations(feed):
    return MutationService(feed)


async def make_user(session: AsyncSession, username: str) -> UserPublic:
    user = User(
        name=username.title(),
        username=username,
        email=f"{username}@example.com",
        password_hash="not-a-real-hash",
    )
    session.add(user)
    await session.commit()
    return UserPublic.model_validate(user)


async def make_post(
    session: AsyncSession,
    author_id: str,
    content: str,
    created_at: datetime = T0,
    tags: Optional[list[str]] = None,
) -> Post:
    post = Post(
        author_id=author_id,
        content=content,
        tags=tags or [],
        created_at=created_at,
        updated_at=created_at,
    )
    session.add(post)
    await session.commit()
    return post


def minutes(n: int) -> datetime:
    return T0 + timedelta(minutes=n)


@pytest_asyncio.fixture
async def alice(db_session):
    return await make_user(db_session, "alice")


@pytest_asyncio.fixture
async def bob(db_session):
    return await make_user(db_session, "bob")


def auth_headers(user: UserPublic) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.user_id)}"}


@pytest_asyncio.fixture
async def client(session_factory, cache):
    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_cache] = lambda: cache
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
