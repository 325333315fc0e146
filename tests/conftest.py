"""Pytest configuration and shared fixtures for API and service tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

# Set test DB before app imports so config/engine use it
_DB_FILE = os.path.join(tempfile.mkdtemp(prefix="marketadmin-tests-"), "test.db")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_FILE}")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DEFAULT_RATE_LIMIT", "100000/minute")
os.environ.setdefault("STRIPE_SECRET_KEY", "")

from marketadmin.config import settings
from marketadmin.core.auth import create_access_token
from marketadmin.core.authz import Actor
from marketadmin.db import session as db_session
from marketadmin.db.base import Base
from marketadmin.main import app
from marketadmin.models.subscription import Subscription, SubscriptionStatus
from marketadmin.models.user import Role, User
from marketadmin.services.payment_processor import PaymentProcessorError, get_payment_processor
from marketadmin.services.platform_settings import seed_default_settings

# One connection per checkout so sessions never share a transaction
test_engine = create_async_engine(settings.database_url, poolclass=NullPool)
db_session.engine = test_engine
db_session.async_session_maker.configure(bind=test_engine)
async_session_maker = db_session.async_session_maker

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeProcessor:
    """Records processor calls; ops listed in fail_on raise PaymentProcessorError."""

    name = "fake"

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()

    async def _record(self, op: str, sub) -> None:
        self.calls.append((op, sub.id))
        if op in self.fail_on:
            raise PaymentProcessorError(f"{op} rejected")

    async def cancel(self, subscription) -> None:
        await self._record("cancel", subscription)

    async def resume(self, subscription) -> None:
        await self._record("resume", subscription)

    async def refund(self, subscription, amount_cents: int, reason: str) -> str | None:
        await self._record("refund", subscription)
        return f"re_test_{len(self.calls)}"

    @property
    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]


@pytest_asyncio.fixture
async def clean_db():
    """Recreate all tables and seed settings so each test starts clean."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db_session.init_db()
    async with async_session_maker() as session:
        await seed_default_settings(session)
        await session.commit()
    yield


@pytest.fixture
def processor():
    fake = FakeProcessor()
    app.dependency_overrides[get_payment_processor] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_payment_processor, None)


@pytest_asyncio.fixture
async def client(clean_db, processor):
    """Yield AsyncClient bound to the app with the fake processor installed."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


async def create_user(email: str, role: Role = Role.USER, name: str | None = None) -> User:
    async with async_session_maker() as session:
        user = User(email=email, name=name, role=role)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def create_subscription(
    user_id: int,
    *,
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    cancel_at_period_end: bool = False,
    plan_id: str = "pro_monthly",
    start: datetime | None = None,
    days: int = 30,
    created_at: datetime | None = None,
) -> Subscription:
    start = start or NOW - timedelta(days=10)
    async with async_session_maker() as session:
        sub = Subscription(
            user_id=user_id,
            plan_id=plan_id,
            status=status,
            cancel_at_period_end=cancel_at_period_end,
            current_period_start=start,
            current_period_end=start + timedelta(days=days),
        )
        if created_at is not None:
            sub.created_at = created_at
            sub.updated_at = created_at
        session.add(sub)
        await session.commit()
        await session.refresh(sub)
        return sub


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


@pytest_asyncio.fixture
async def admin(clean_db) -> User:
    return await create_user("admin@test.com", Role.ADMIN, name="Admin")


@pytest_asyncio.fixture
async def member(clean_db) -> User:
    return await create_user("member@test.com", Role.USER, name="Member One")


@pytest_asyncio.fixture
async def other_member(clean_db) -> User:
    return await create_user("other@test.com", Role.USER, name="Other Person")


@pytest.fixture
def admin_headers(admin) -> dict:
    return headers_for(admin)


@pytest.fixture
def member_headers(member) -> dict:
    return headers_for(member)
