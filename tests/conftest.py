"""
Test fixtures for the Loyalty API test suite.

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - session_factory: Session factory on the test engine, for the workers
  - client: Async HTTP test client (unauthenticated)
  - register_user: Registers a user through the API, returns (user_id, headers)
  - auth_headers / other_auth_headers: Two independent registered users
  - make_order_number: Builds Luhn-valid order numbers
  - create_user / credit_user: Service-level helpers for store tests

In-memory SQLite (sqlite+aiosqlite://) keeps every test isolated. FastAPI's
get_db dependency is overridden so the application code runs exactly as in
production, against the test database.
"""

import os
import uuid

# Settings are read at import time; provide the required secret for tests
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("BACKGROUND_WORKERS_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from loyalty.accrual_client import AccrualResult
from loyalty.database import Base, get_db
from loyalty.main import app
from loyalty.models.order import OrderStatus
from loyalty.services import auth_service, order_service


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


def luhn_number(payload: str) -> str:
    """Append the Luhn check digit to a digit string."""
    total = 0
    for position, char in enumerate(reversed(payload)):
        digit = int(char)
        # The check digit will sit at position 0, shifting payload digits left
        if position % 2 == 0:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return payload + str((10 - total % 10) % 10)


@pytest.fixture
def make_order_number():
    """Return a function producing distinct Luhn-valid order numbers."""
    def _make(seed: int) -> str:
        return luhn_number(f"9{seed:09d}")
    return _make


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    """Register a user through the real endpoint; returns (user_id, headers)."""
    async def _register(login: str, password: str = "SecurePass123!"):
        response = await client.post(
            "/api/user/register",
            json={"login": login, "password": password},
        )
        assert response.status_code == 200, f"Register failed: {response.text}"
        body = response.json()
        headers = {"Authorization": f"Bearer {body['token']}"}
        return uuid.UUID(body["user_id"]), headers
    return _register


@pytest_asyncio.fixture
async def auth_headers(register_user):
    _, headers = await register_user("alice")
    return headers


@pytest_asyncio.fixture
async def other_auth_headers(register_user):
    _, headers = await register_user("bob")
    return headers


@pytest.fixture
def create_user(session_factory):
    """Create a user (and balance snapshot) directly through the service."""
    async def _create(login: str) -> uuid.UUID:
        async with session_factory.begin() as db:
            user, _ = await auth_service.register(db, login, "SecurePass123!")
            return user.id
    return _create


@pytest.fixture
def credit_user(session_factory):
    """Upload an order for a user and mark it PROCESSED with an accrual."""
    async def _credit(user_id: uuid.UUID, number: str, accrual_cents: int) -> None:
        async with session_factory.begin() as db:
            await order_service.store_order(db, number, user_id)
        async with session_factory.begin() as db:
            await order_service.apply_status_batch(
                db, [AccrualResult(number, OrderStatus.PROCESSED, accrual_cents)]
            )
    return _credit
