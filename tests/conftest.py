from __future__ import annotations

from datetime import datetime
from typing import Optional

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from ems.api.routes.auth import get_current_user
from ems.db import Database
from ems.models.company import AttendanceRules, CompanySettings
from ems.models.user import User, UserRole
from ems.services.clock import get_clock
from main import app

COMPANY = "Acme Corp"


class FrozenClock:
    """Stands in for the wall clock; every call returns ``now`` whatever the timezone"""

    def __init__(self, now: datetime):
        self.now = now
        self.timezones: list[str] = []

    def __call__(self, timezone: str) -> datetime:
        self.timezones.append(timezone)
        return self.now


class Session:
    """Which user the overridden auth dependency returns"""

    def __init__(self):
        self.user: Optional[User] = None

    def login(self, user: User) -> User:
        self.user = user
        return user


@pytest.fixture
async def database():
    db = Database("mongodb://localhost:27017", "ems_test", client_factory=AsyncMongoMockClient)
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 5, 9, 4, 0))


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
async def client(database, clock, session):
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_current_user] = lambda: session.user
    app.state.database = database
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
    del app.state.database


@pytest.fixture
def make_user(database):
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.EMPLOYEE, **fields) -> User:
        counter["n"] += 1
        n = counter["n"]
        defaults = dict(
            employee_id=f"EMP2026{n:04d}",
            first_name=f"User{n}",
            last_name="Test",
            email=f"user{n}@acmecorp.com",
            role=role,
            department="Engineering",
            company=COMPANY,
            is_approved=True,
        )
        defaults.update(fields)
        user = User(**defaults)
        await user.insert()
        return user

    return _make


@pytest.fixture
def make_settings(database):
    async def _make(company_name: str = COMPANY, **rules) -> CompanySettings:
        company_settings = CompanySettings(
            company_name=company_name,
            attendance_rules=AttendanceRules(**rules),
            timezone="Asia/Kolkata",
        )
        await company_settings.insert()
        return company_settings

    return _make
