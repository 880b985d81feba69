import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from database import create_tables
from main import app
from repositories.application import ApplicationRepository
from repositories.auth import UserRepository
from repositories.event import EventRepository
from repositories.notification import NotificationRepository
from repositories.session import SessionManager
from schemas.auth import SUserRegister
from schemas.event import SEventCreate
from utils.dependencies import get_session_factory
from utils.time import utcnow
from utils.tokens import TokenCodec


PASSWORD = "secret123"


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def codec():
    return TokenCodec(access_secret="test-access-secret", refresh_secret="test-refresh-secret")


@pytest.fixture
def users(session_factory):
    return UserRepository(session_factory)


@pytest.fixture
def sessions(session_factory, codec, users):
    return SessionManager(session_factory, codec, users)


@pytest.fixture
def events(session_factory):
    return EventRepository(session_factory)


@pytest.fixture
def notifications(session_factory):
    return NotificationRepository(session_factory)


@pytest.fixture
def applications(session_factory, notifications):
    return ApplicationRepository(session_factory, notifications)


@pytest.fixture
def make_user(users):
    counter = {"n": 0}

    async def _make_user(role: str = "member", email: str | None = None):
        counter["n"] += 1
        data = SUserRegister(
            email=email or f"user{counter['n']}@example.com",
            password=PASSWORD,
            first_name="Имя",
            last_name=f"Фамилия{counter['n']}",
            role=role
        )
        return await users.create_user(data, role=role)

    return _make_user


@pytest.fixture
async def organizer(make_user):
    return await make_user(role="organizer", email="organizer@example.com")


@pytest.fixture
def make_event(events, organizer):
    async def _make_event(max_participants: int = 10, days_ahead: int = 7, deadline_days_ahead: int | None = None, **fields):
        now = utcnow()
        data = SEventCreate(
            title=fields.pop("title", "Субботник"),
            description=fields.pop("description", "Уборка парка"),
            location=fields.pop("location", "Центральный парк"),
            category=fields.pop("category", "Экология"),
            price=fields.pop("price", Decimal("0")),
            event_date=now + timedelta(days=days_ahead),
            registration_deadline=(
                now + timedelta(days=deadline_days_ahead) if deadline_days_ahead is not None else None
            ),
            max_participants=max_participants,
        )
        return await events.create_event(data, organizer.id)

    return _make_event


@pytest.fixture
async def client(session_factory):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    async def _login(email: str, password: str = PASSWORD) -> dict:
        response = await client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
