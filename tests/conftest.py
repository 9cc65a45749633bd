"""
Pytest fixtures for test database, client, and authentication.

Uses an in-memory SQLite database (aiosqlite), rebuilt per test for
isolation. Tokens are issued locally in the identity provider's format.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SUBMISSION_LOCK"] = "local"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TIMEZONE"] = "UTC"

from datetime import date, time, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from labbook.main import app
from labbook.core.config import lab_now
from labbook.core.security import create_access_token
from labbook.db.base import Base
from labbook.db.session import get_db
from labbook.models.booking import Booking
from labbook.models.resource import Resource

TEST_DATABASE_URL = "sqlite+aiosqlite://"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"
FACULTY_ID = "faculty-1"
ADMIN_ID = "admin-1"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def _headers(subject: str, role: str) -> dict:
    token = create_access_token(data={"sub": subject, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers() -> dict:
    return _headers(STUDENT_ID, "student")


@pytest.fixture
def other_student_headers() -> dict:
    return _headers(OTHER_STUDENT_ID, "student")


@pytest.fixture
def faculty_headers() -> dict:
    return _headers(FACULTY_ID, "faculty")


@pytest.fixture
def admin_headers() -> dict:
    return _headers(ADMIN_ID, "admin")


@pytest.fixture
def tomorrow() -> date:
    return lab_now().date() + timedelta(days=1)


async def make_resource(db: AsyncSession, **overrides) -> int:
    """Insert a resource and return its id."""
    fields = {
        "name": "Oscilloscope DSO-X",
        "department": "ECE",
        "location": "Lab 2",
        "active": True,
    }
    fields.update(overrides)
    resource = Resource(**fields)
    db.add(resource)
    await db.commit()
    await db.refresh(resource)
    return resource.id


async def make_booking(db: AsyncSession, resource_id: int, **overrides) -> int:
    """Insert a booking directly, bypassing admission, and return its id."""
    fields = {
        "resource_id": resource_id,
        "requester_id": STUDENT_ID,
        "booking_date": lab_now().date() + timedelta(days=1),
        "start_time": time(9, 0),
        "end_time": time(10, 0),
        "purpose": "Signal analysis lab",
        "status": "pending",
    }
    fields.update(overrides)
    booking = Booking(**fields)
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    return booking.id


@pytest_asyncio.fixture
async def resource_id(db_session: AsyncSession) -> int:
    """An active machine."""
    return await make_resource(db_session)


@pytest_asyncio.fixture
async def inactive_resource_id(db_session: AsyncSession) -> int:
    """A machine under maintenance."""
    return await make_resource(db_session, name="3D Printer", department="Mechanical", active=False)


@pytest.fixture
def booking_factory(db_session: AsyncSession):
    """Seed bookings in any status, e.g. `await booking_factory(rid, status="approved")`."""

    async def factory(resource_id: int, **overrides) -> int:
        return await make_booking(db_session, resource_id, **overrides)

    return factory


@pytest.fixture
def resource_factory(db_session: AsyncSession):
    async def factory(**overrides) -> int:
        return await make_resource(db_session, **overrides)

    return factory
