"""Shared pytest fixtures.

Provides:
- engine: in-memory SQLite async engine with all tables
- session_factory / session: sessions bound to that engine
- client: AsyncClient with the request session dependency overridden
- make_organization / make_user / auth_headers: data helpers
"""

import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from partner_onboarding.core.database import get_session
from partner_onboarding.core.security import create_access_token, hash_password
from partner_onboarding.models import Base, Organization, OrgStatus, Role, User
from partner_onboarding.services import NotificationChannel


class RecordingChannel(NotificationChannel):
    """Channel that records what it was asked to send."""

    name = "test"

    def __init__(self):
        self.sent = []

    async def send(self, recipient, subject, content, event_type):
        self.sent.append(
            {"recipient": recipient, "subject": subject, "content": content, "event_type": event_type}
        )
        return True, None


class FailingChannel(NotificationChannel):
    """Channel whose sink is unreachable."""

    name = "test"

    async def send(self, recipient, subject, content, event_type):
        return False, "notification sink unreachable"


@pytest.fixture
async def engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def failing_channel() -> FailingChannel:
    return FailingChannel()


@pytest.fixture
async def client(session_factory):
    """AsyncClient with get_session overridden to use the test engine."""
    from partner_onboarding.main import app

    async def _override_session():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _override_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_organization(session_factory):
    """Insert an organization with a given status and age."""

    async def _make(
        status: OrgStatus = OrgStatus.UNDER_REVIEW_GM,
        days_old: float = 0,
        sector: str | None = None,
        name: str | None = None,
        now: datetime | None = None,
    ) -> Organization:
        created_at = (now or datetime.now(timezone.utc)) - timedelta(days=days_old)
        organization = Organization(
            name=name or f"Org {uuid4().hex[:6]}",
            status=status,
            owner_email=f"owner-{uuid4().hex[:8]}@example.org",
            owner_first_name="Ada",
            owner_last_name="Okafor",
            sector=sector,
            country="Kenya",
            document_count=2,
            created_at=created_at,
            updated_at=created_at,
        )
        async with session_factory() as s:
            s.add(organization)
            await s.commit()
        return organization

    return _make


@pytest.fixture
def make_user(session_factory):
    """Insert a user with a role, optionally attached to an organization."""

    async def _make(
        role: Role = Role.PARTNER_USER,
        organization: Organization | None = None,
        email_verified: bool = True,
        password: str = "correct-horse-battery",
    ) -> User:
        user = User(
            email=f"{role.value}-{uuid4().hex[:8]}@example.org",
            first_name="Test",
            last_name=role.value.title(),
            password_hash=hash_password(password),
            role=role,
            email_verified_at=datetime.now(timezone.utc) if email_verified else None,
            organization_id=organization.id if organization else None,
        )
        async with session_factory() as s:
            s.add(user)
            await s.commit()
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.organization_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
