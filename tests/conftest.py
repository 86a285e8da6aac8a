"""
tests/conftest.py
Shared fixtures: in-memory SQLite per test, fakeredis, an httpx client
bound to the app, users of every role, and SQL failure injection.
"""

import os
import sqlite3
import tempfile
from datetime import datetime, timedelta, timezone

# Must be set before the app (and its settings) are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="eventhub-uploads-"))

import pytest_asyncio
from fakeredis import FakeServer
from fakeredis import aioredis as fake_aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event as sa_event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.database import Base, get_db
from config.redis_client import get_optional_redis
from main import app
from shared.models.models import Event, User, UserRole
from shared.utils.security import create_access_token, hash_password

TEST_PASSWORD = "password123"


def auth_headers(user: User) -> dict:
    token = create_access_token(user.id, user.role.value)
    return {"Authorization": f"Bearer {token}"}


async def make_user(
    db: AsyncSession,
    name: str,
    email: str,
    role: UserRole = UserRole.STUDENT,
    college: str = "Test College",
    points: int = 0,
) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        college=college,
        role=role,
        points=points,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_event(
    db: AsyncSession,
    owner: User,
    title: str = "Hack Night",
    category: str = "Hackathon",
    days_ahead: int = 7,
) -> Event:
    start = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    event = Event(
        college_id=owner.id,
        title=title,
        description=f"{title} description",
        category=category,
        location="Main Hall",
        start_date=start,
        end_date=start + timedelta(hours=4),
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)
    return event


# ── Infrastructure ────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis():
    client = fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def client(db, redis):
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_optional_redis] = lambda: redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Users & events ────────────────────────────────────────────

@pytest_asyncio.fixture
async def student(db) -> User:
    return await make_user(db, "Asha Student", "asha@college.edu")


@pytest_asyncio.fixture
async def other_student(db) -> User:
    return await make_user(db, "Ben Student", "ben@college.edu")


@pytest_asyncio.fixture
async def college_admin(db) -> User:
    return await make_user(db, "Clara Admin", "clara@college.edu", role=UserRole.COLLEGE_ADMIN)


@pytest_asyncio.fixture
async def other_admin(db) -> User:
    return await make_user(
        db, "Dev Admin", "dev@other.edu", role=UserRole.COLLEGE_ADMIN, college="Other College"
    )


@pytest_asyncio.fixture
async def super_admin(db) -> User:
    return await make_user(db, "Root Admin", "root@college.edu", role=UserRole.SUPER_ADMIN)


@pytest_asyncio.fixture
async def event(db, college_admin) -> Event:
    return await make_event(db, college_admin)


# ── Failure injection ─────────────────────────────────────────

@pytest_asyncio.fixture
async def failing_sql(engine):
    """
    Make matching statements fail with a driver error.

        failing_sql(lambda sql, params: sql.startswith("UPDATE users"))
    """
    listeners = []

    def install(predicate):
        def _fail(conn, cursor, statement, parameters, context, executemany):
            if predicate(statement, parameters):
                raise sqlite3.OperationalError("disk I/O error")

        sa_event.listen(engine.sync_engine, "before_cursor_execute", _fail)
        listeners.append(_fail)

    yield install

    for fn in listeners:
        sa_event.remove(engine.sync_engine, "before_cursor_execute", fn)
