"""
Shared fixtures: an in-memory SQLite database per test, seeded users and
an ASGI client wired to the same session factory.
"""

import os

# Settings are read at import time
os.environ.setdefault("DB_URL", "sqlite:///:memory:")
os.environ.setdefault("ENABLE_RATE_LIMITING", "false")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from travelmate.core.limits import limiter
from travelmate.core.security import create_access_token
from travelmate.core.settings import Settings
from travelmate.db.models import Destination, StoreAdminRequest, Stay, Trip, User
from travelmate.db.session import DatabaseManager, get_session

limiter.enabled = False


@pytest_asyncio.fixture
async def db():
    manager = DatabaseManager(Settings(DB_URL="sqlite:///:memory:", LOG_FILE=""))
    await manager.initialize()
    await manager.init_db()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def session(db):
    async with db.get_session() as session:
        yield session


async def make_user(session, username, is_admin=False, store_admin_request=StoreAdminRequest.NONE):
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash="x",
        is_admin=is_admin,
        store_admin_request=store_admin_request,
    )
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def traveler(session):
    return await make_user(session, "traveler")


@pytest_asyncio.fixture
async def other_traveler(session):
    return await make_user(session, "wanderer")


@pytest_asyncio.fixture
async def store_admin(session):
    return await make_user(session, "shopkeeper", store_admin_request=StoreAdminRequest.APPROVED)


@pytest_asyncio.fixture
async def admin(session):
    return await make_user(session, "root", is_admin=True)


@pytest_asyncio.fixture
async def destination(session, store_admin):
    item = Destination(name="Lisbon", country="Portugal", city="Lisbon", owner_id=store_admin.id)
    session.add(item)
    await session.commit()
    return item


@pytest_asyncio.fixture
async def trip(session, store_admin, destination):
    item = Trip(
        title="Alfama walking tour",
        duration="1 day",
        price=Decimal("49.00"),
        owner_id=store_admin.id,
        destination_id=destination.id,
    )
    session.add(item)
    await session.commit()
    return item


@pytest_asyncio.fixture
async def stay(session, store_admin):
    item = Stay(name="Casa Azul", type="Guesthouse", owner_id=store_admin.id)
    session.add(item)
    await session.commit()
    return item


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def client(db):
    from travelmate.main import app

    async def override_get_session():
        async with db.get_session() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest.fixture
def user_factory(session):
    async def factory(username, **kwargs):
        return await make_user(session, username, **kwargs)
    return factory


@pytest.fixture
def auth():
    return auth_headers
