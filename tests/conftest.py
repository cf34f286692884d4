"""
pytest configuration and shared fixtures for ProjectHub tests.

Every test gets a fresh in-memory SQLite database. Service tests drive the
services directly with a controllable clock; API tests go through the ASGI
app with ``get_db`` and the email service overridden.
"""

import logging
import os
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

# Settings are cached on first import, so the test environment is set first
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["FRONTEND_URL"] = "http://localhost:3000"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.core.db import get_db  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.main import app  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.project import Project  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.email import EmailService, InvitationEmail, get_email_service  # noqa: E402

logging.basicConfig(level=logging.INFO)

DEFAULT_PASSWORD = "password123"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailService(EmailService):
    """Captures invitation emails instead of delivering them."""

    def __init__(self):
        super().__init__()
        self.sent: List[InvitationEmail] = []
        self.fail = False

    def send_invitation_email(self, invitation: InvitationEmail) -> bool:
        if self.fail:
            raise RuntimeError("SMTP relay unavailable")
        self.sent.append(invitation)
        return True


@pytest.fixture
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


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file database, each with its own connection, for race tests."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'projecthub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def email_outbox():
    return RecordingEmailService()


async def create_user(
    db,
    role: str = "member",
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> User:
    user = User(
        id=str(uuid.uuid4()),
        name=name or f"{role.capitalize()} User",
        email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com",
        hashed_password=hash_password(DEFAULT_PASSWORD),
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


async def create_project(db, manager: Optional[User] = None, name: str = "Website Redesign") -> Project:
    project = Project(
        id=str(uuid.uuid4()),
        name=name,
        status="planning",
        manager_id=manager.id if manager else None,
    )
    db.add(project)
    await db.commit()
    return project


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest.fixture
async def admin(db):
    return await create_user(db, role="admin", name="Alice Admin")


@pytest.fixture
async def manager(db):
    return await create_user(db, role="manager", name="Mark Manager")


@pytest.fixture
async def other_manager(db):
    return await create_user(db, role="manager", name="Olga Manager")


@pytest.fixture
async def member(db):
    return await create_user(db, role="member", name="Mia Member")


@pytest.fixture
async def project(db, manager):
    return await create_project(db, manager)


@pytest.fixture
async def client(session_factory, email_outbox):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_outbox
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
