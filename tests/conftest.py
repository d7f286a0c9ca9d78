import os

# must be set before helpdesk.core.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from itertools import count

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.db.base import Base
from helpdesk.db.models import Category, PriorityEnum, RoleEnum, Ticket, TicketStatusEnum, User
from helpdesk.db.session import get_session
from helpdesk.core.security import hash_password
from helpdesk.main import create_app
from helpdesk.services.auth import make_token_for_user, to_principal

PASSWORD = "secret123"
# hashing is the slow part; one hash serves every fixture user
_PASSWORD_HASH = hash_password(PASSWORD)
_seq = count(1)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    async def _make(role: RoleEnum = RoleEnum.user, *, email: str | None = None, full_name: str | None = None) -> User:
        n = next(_seq)
        user = User(
            email=email or f"{role.value}{n}@acme.io",
            full_name=full_name or f"{role.value.title()} {n}",
            password_hash=_PASSWORD_HASH,
            role=role,
        )
        async with session_factory() as s:
            s.add(user)
            await s.commit()
            await s.refresh(user)
        return user

    return _make


@pytest.fixture
def make_ticket(session_factory):
    async def _make(
        owner: User,
        *,
        subject: str = "Printer is on fire",
        description: str = "Smoke everywhere",
        status: TicketStatusEnum = TicketStatusEnum.open,
        priority: PriorityEnum = PriorityEnum.medium,
        assigned_agent_id: int | None = None,
        category_id: int | None = None,
    ) -> Ticket:
        ticket = Ticket(
            subject=subject,
            description=description,
            status=status,
            priority=priority,
            user_id=owner.id,
            assigned_agent_id=assigned_agent_id,
            category_id=category_id,
        )
        async with session_factory() as s:
            s.add(ticket)
            await s.commit()
            await s.refresh(ticket)
        return ticket

    return _make


@pytest.fixture
def make_category(session_factory):
    async def _make(name: str = "General") -> Category:
        category = Category(name=name, description=f"{name} requests")
        async with session_factory() as s:
            s.add(category)
            await s.commit()
            await s.refresh(category)
        return category

    return _make


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token_for_user(user)}"}


def principal_of(user: User):
    return to_principal(user)
