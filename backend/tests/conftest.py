"""
Shared pytest fixtures.

Each test gets its own SQLite database file (via aiosqlite) so tests run
without a live Postgres instance and two sessions can interleave against the
same data. UUID columns are stored as strings.

Environment overrides are applied before importing civicdesk modules so that
Settings() picks up the test configuration.
"""
import os

# Set test environment BEFORE importing any civicdesk module
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEV_SKIP_AUTH", "true")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("REPORTING_TIMEZONE", "UTC")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from civicdesk.engine.routing import get_vocabulary
from civicdesk.engine.scope import Actor
from civicdesk.models.base import Base
from civicdesk.models.complaint import Complaint, StatusHistoryEntry  # noqa: F401 — registers model
from civicdesk.models.department import Department
from civicdesk.models.notification import Notification  # noqa: F401
from civicdesk.models.user import Role, User
from civicdesk.models.worker import WorkerProfile


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'civicdesk.db'}",
        connect_args={"check_same_thread": False},
    )

    # SQLite doesn't enforce FK by default — enable it
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def vocabulary():
    return get_vocabulary()


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------

async def _make_department(session: AsyncSession, name: str, categories: list[str], priority: int) -> Department:
    department = Department(
        name=name,
        name_local=f"{name} (local)",
        status="active",
        routing_priority=priority,
        categories=categories,
    )
    session.add(department)
    await session.commit()
    return department


@pytest_asyncio.fixture
async def sanitation(db_session: AsyncSession) -> Department:
    return await _make_department(db_session, "Sanitation Department", ["Garbage & Waste"], 10)


@pytest_asyncio.fixture
async def public_works(db_session: AsyncSession) -> Department:
    return await _make_department(
        db_session, "Public Works Department", ["Traffic & Roads", "Public Spaces"], 20
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def make_user(
    session: AsyncSession,
    role: Role,
    name: str,
    department: Department | None = None,
) -> User:
    user = User(
        full_name=name,
        email=f"{name.lower().replace(' ', '.')}@test.local",
        role=role.value,
        department_id=department.id if department else None,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def citizen(db_session):
    return await make_user(db_session, Role.CITIZEN, "Asha Citizen")


@pytest_asyncio.fixture
async def other_citizen(db_session):
    return await make_user(db_session, Role.CITIZEN, "Ravi Citizen")


@pytest_asyncio.fixture
async def magistrate(db_session):
    return await make_user(db_session, Role.DISTRICT_MAGISTRATE, "District Magistrate")


@pytest_asyncio.fixture
async def head(db_session, sanitation):
    user = await make_user(db_session, Role.DEPARTMENT_HEAD, "Sanitation Head", sanitation)
    sanitation.head_id = user.id
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def roads_head(db_session, public_works):
    return await make_user(db_session, Role.DEPARTMENT_HEAD, "Roads Head", public_works)


@pytest_asyncio.fixture
async def worker(db_session, sanitation):
    user = await make_user(db_session, Role.FIELD_WORKER, "Field Worker One", sanitation)
    db_session.add(WorkerProfile(user_id=user.id, specializations=["Garbage & Waste"]))
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def second_worker(db_session, sanitation):
    user = await make_user(db_session, Role.FIELD_WORKER, "Field Worker Two", sanitation)
    db_session.add(WorkerProfile(user_id=user.id, specializations=[]))
    await db_session.commit()
    return user


def actor(user: User) -> Actor:
    return Actor.from_user(user)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(db_session: AsyncSession, magistrate: User):
    """
    AsyncClient for the FastAPI app with:
    - DB dependency overridden to use the test session
    - DEV_SKIP_AUTH=true so requests are authenticated as the magistrate
      by default (pass an X-Dev-User-ID header to switch users).
    """
    from civicdesk.main import app
    from civicdesk.core.db import get_db

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
        headers={"X-Dev-User-ID": str(magistrate.id)},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def as_user(user: User) -> dict[str, str]:
    return {"X-Dev-User-ID": str(user.id)}
