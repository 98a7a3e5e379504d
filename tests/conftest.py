"""Pytest configuration and fixtures."""

import fnmatch
import json
import os
from typing import AsyncGenerator

# Settings are cached on first import, so the environment is pinned first
os.environ.update(
    {
        "DATABASE_URL": "sqlite+aiosqlite://",
        "APP_ENV": "development",
        "DEBUG": "false",
        "BCRYPT_ROUNDS": "4",
        "CELERY_TASK_ALWAYS_EAGER": "true",
        "SMTP_HOST": "",
        "RATE_LIMIT_DEFAULT_RPM": "10000",
        "RATE_LIMIT_AUTH_RPM": "10000",
    }
)

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from productbazar.auth.jwt import create_access_token
from productbazar.auth.password import hash_password
from productbazar.database import get_db
from productbazar.main import create_app
from productbazar.models import Base, Job, JobStatus, Product, ProductStatus, User, UserRole
from productbazar.realtime.pubsub import set_redis
from productbazar.utils.text import unique_slug

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "Str0ng!Pass"

BROWSER_HEADERS = {
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    ),
    "accept": "text/html,application/json",
    "accept-language": "en-US,en;q=0.9",
    "accept-encoding": "gzip, deflate",
}


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.published: list[tuple[str, dict]] = []

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value if isinstance(value, str) else str(value)
        if ex:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                deleted += 1
            self.ttls.pop(key, None)
        return deleted

    async def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return key in self.store

    async def scan_iter(self, match=None, count=None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        return 0

    async def aclose(self):
        return None


@pytest.fixture(autouse=True)
def fake_redis():
    """Every test gets a fresh Redis double; tests can uninstall it with set_redis(None)."""
    redis = FakeRedis()
    set_redis(redis)
    yield redis
    set_redis(None)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app, sharing the test session."""
    app = create_app()

    async def override_get_db():
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def make_user(db_session):
    """Factory for committed users with derived capabilities."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.USER, **fields) -> User:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "email": f"user{n}@example.com",
            "username": f"user{n}",
            "password_hash": hash_password(TEST_PASSWORD),
            "first_name": "Test",
            "last_name": f"User{n}",
            "is_email_verified": True,
            "secondary_roles": [],
        }
        values.update(fields)
        user = User(role=role, **values)
        user.update_role_capabilities()
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def make_product(db_session):
    """Factory for committed products."""

    async def _make(maker: User, name: str = "Launch Kit", **fields) -> Product:
        values = {
            "slug": unique_slug(name),
            "tagline": f"{name} for makers",
            "description": f"{name} helps teams ship faster.",
            "category": "Productivity",
            "status": ProductStatus.PUBLISHED,
            "view_history": [],
        }
        values.update(fields)
        product = Product(name=name, maker_id=maker.id, **values)
        db_session.add(product)
        await db_session.commit()
        return product

    return _make


@pytest_asyncio.fixture
async def make_job(db_session):
    """Factory for committed job postings."""

    async def _make(poster: User, title: str = "Backend Engineer", **fields) -> Job:
        values = {
            "slug": unique_slug(title),
            "company": {"name": "Acme"},
            "location": "Remote",
            "description": f"We are hiring a {title}.",
            "requirements": [],
            "responsibilities": [],
            "benefits": [],
            "skills": ["Python", "FastAPI"],
            "status": JobStatus.PUBLISHED,
        }
        values.update(fields)
        job = Job(title=title, poster_id=poster.id, **values)
        db_session.add(job)
        await db_session.commit()
        return job

    return _make


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user, merged with any extra headers."""

    def _headers(user: User, **extra) -> dict[str, str]:
        token = create_access_token(user.id, user.role.value)
        return {"Authorization": f"Bearer {token}", **extra}

    return _headers


@pytest.fixture
def browser_headers() -> dict[str, str]:
    return dict(BROWSER_HEADERS)


@pytest.fixture
def password() -> str:
    """Plain-text password of every factory-made user."""
    return TEST_PASSWORD
