"""Shared test fixtures for the SSMS backend.

Provides:
- A fresh in-memory SQLite database per test (aiosqlite, StaticPool)
- FastAPI test app + HTTP client with ``get_db`` overridden
- A real EventBus on ``app.state`` so published messages can be asserted
- Factory helpers for users, stakeholders, events and invites
"""

from __future__ import annotations

import os

# Set test environment BEFORE any ssms imports so Settings() picks them up.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-pytest-only")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ssms.core.permissions import default_permissions_for
from ssms.core.security import create_access_token, hash_password
from ssms.models.base import Base
from ssms.services.event_bus import EventBus

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    """One in-memory database per test; StaticPool keeps it on a single connection."""
    eng = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def bus():
    return EventBus()


# ---------------------------------------------------------------------------
# FastAPI test app + HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def app(db, bus):
    """Test app with ``get_db`` overridden to use the test session."""
    from fastapi import FastAPI
    from slowapi import _rate_limit_exceeded_handler
    from slowapi.errors import RateLimitExceeded

    from ssms.api.v1.router import api_router
    from ssms.config import settings
    from ssms.core.errors import register_exception_handlers
    from ssms.core.rate_limit import limiter
    from ssms.database import get_db

    test_app = FastAPI()
    test_app.state.limiter = limiter
    test_app.state.event_bus = bus
    test_app.state.settings = settings
    test_app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(test_app)
    test_app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    async def _override_get_db():
        yield db

    test_app.dependency_overrides[get_db] = _override_get_db
    yield test_app
    test_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """HTTP test client for the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable slowapi rate limiting during tests to avoid 429 responses."""
    from ssms.core.rate_limit import limiter

    limiter.enabled = False
    yield
    limiter.enabled = True


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------

_PASSWORD_HASH = None


def _password_hash() -> str:
    # bcrypt is slow; every factory user shares one hash of "test1234"
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password("test1234")
    return _PASSWORD_HASH


async def create_user(
    db,
    *,
    email="user@test.com",
    display_name="Test User",
    role="viewer",
    permissions=None,
    is_active=True,
    stakeholder_id=None,
):
    """Insert a user. Permissions default to the role's default set."""
    from ssms.models.user import User

    user = User(
        email=email,
        display_name=display_name,
        password_hash=_password_hash(),
        role=role,
        permissions=(
            permissions
            if permissions is not None
            else [p.value for p in default_permissions_for(role)]
        ),
        is_active=is_active,
        stakeholder_id=stakeholder_id,
    )
    db.add(user)
    await db.commit()
    return user


async def create_stakeholder(db, *, name="Jane Doe", email="jane@x.com", **fields):
    from ssms.models.stakeholder import Stakeholder

    stakeholder = Stakeholder(name=name, email=email, event_ids=[], **fields)
    db.add(stakeholder)
    await db.commit()
    return stakeholder


async def create_event(db, *, owner=None, title="Quarterly Review", **fields):
    from ssms.models.event import Event

    start = fields.pop("start_time", datetime.now(timezone.utc) + timedelta(days=1))
    event = Event(
        title=title,
        start_time=start,
        end_time=fields.pop("end_time", start + timedelta(hours=1)),
        owner_id=owner.id if owner else None,
        owner_name=owner.display_name if owner else None,
        stakeholder_ids=[],
        **fields,
    )
    db.add(event)
    await db.commit()
    return event


async def create_invite(db, stakeholder, *, role="member"):
    """Issue an invite through the workflow and commit it. Returns the token."""
    from ssms.services.invitation_service import InvitationService

    token, _ = await InvitationService(db).invite(stakeholder.id, role)
    await db.commit()
    return token


def auth_headers(user) -> dict:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Convenience fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def root_user(db):
    return await create_user(db, email="root@test.com", display_name="Root", role="root")


@pytest.fixture
async def admin_user(db):
    return await create_user(db, email="admin@test.com", display_name="Admin", role="admin")


@pytest.fixture
async def manager_user(db):
    return await create_user(db, email="manager@test.com", display_name="Manager", role="manager")


@pytest.fixture
async def member_user(db):
    return await create_user(db, email="member@test.com", display_name="Member", role="member")


@pytest.fixture
async def viewer_user(db):
    return await create_user(db, email="viewer@test.com", display_name="Viewer", role="viewer")
