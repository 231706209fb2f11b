"""Shared test fixtures — async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"today" is pinned to Monday 2026-03-02 for every test.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrportal.auth.schemas import AuthContext
from hrportal.auth.service import open_session
from hrportal.common.constants import LeaveType, RequestStatus, UserRole
from hrportal.common.rate_limit import limiter
from hrportal.database import Base, get_db
from hrportal.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrportal.auth.models  # noqa: F401
import hrportal.common.audit  # noqa: F401
import hrportal.core_hr.models  # noqa: F401
import hrportal.timeoff.models  # noqa: F401

from hrportal.core_hr.models import Employee
from hrportal.timeoff.models import CompanyHoliday, LeaveAllowance, TimeOffRequest

TODAY = date(2026, 3, 2)  # Monday
CSRF = "csrf-token-for-tests"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def fixed_today():
    with patch("hrportal.timeoff.days.today", return_value=TODAY):
        yield TODAY


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    department: Optional[str] = "Engineering",
    role: UserRole = UserRole.employee,
) -> dict:
    return dict(
        first_name=first_name,
        last_name=last_name,
        email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        department=department,
        position="Staff",
        hire_date=date(2024, 1, 15),
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def seed_request(
    db: AsyncSession,
    employee_id: int,
    *,
    start_date: date,
    end_date: date,
    leave_type: LeaveType = LeaveType.vacation,
    status: RequestStatus = RequestStatus.pending,
    created_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> TimeOffRequest:
    req = TimeOffRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        status=status,
        notes=notes,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(req)
    await db.flush()
    return req


async def seed_holiday(db: AsyncSession, holiday_date: date, name: str = "Holiday") -> CompanyHoliday:
    holiday = CompanyHoliday(holiday_date=holiday_date, name=name)
    db.add(holiday)
    await db.flush()
    return holiday


async def seed_allowance(
    db: AsyncSession,
    employee_id: int,
    leave_type: LeaveType,
    days_allowed: int,
    *,
    year: int = 2026,
) -> LeaveAllowance:
    allowance = LeaveAllowance(
        employee_id=employee_id,
        leave_type=leave_type,
        year=year,
        days_allowed=days_allowed,
    )
    db.add(allowance)
    await db.flush()
    return allowance


def make_ctx(employee: Employee, *, csrf_token: str = CSRF) -> AuthContext:
    """AuthContext for calling services directly, without a session row."""
    return AuthContext(
        user_id=employee.id,
        role=employee.role,
        session_id=1,
        csrf_token=csrf_token,
    )


# ── Auth helpers ────────────────────────────────────────────────────

async def auth_headers_for(db: AsyncSession, employee: Employee) -> dict[str, str]:
    """Open a real session and return Bearer + CSRF headers for it."""
    tokens = await open_session(db, employee.id)
    await db.commit()
    return {
        "Authorization": f"Bearer {tokens.access_token}",
        "X-CSRF-Token": tokens.csrf_token,
    }


@pytest.fixture
async def employee(db) -> Employee:
    return await seed_employee(
        db, first_name="Alice", last_name="Walker", email="alice@example.com",
    )


@pytest.fixture
async def hr_user(db) -> Employee:
    return await seed_employee(
        db,
        first_name="Henry",
        last_name="Reyes",
        email="henry@example.com",
        department="People",
        role=UserRole.hr,
    )


@pytest.fixture
async def employee_headers(db, employee) -> dict[str, str]:
    return await auth_headers_for(db, employee)


@pytest.fixture
async def hr_headers(db, hr_user) -> dict[str, str]:
    return await auth_headers_for(db, hr_user)
