"""
Pytest configuration and fixtures
Shared test setup for all test modules
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SCAN_PROVIDER"] = "onerep"
os.environ["ONEREP_API_BASE"] = "https://onerep.test"
os.environ["ONEREP_API_KEY"] = "onerep-test-key"
os.environ["HELLOPRIVACY_API_BASE"] = "https://helloprivacy.test"
os.environ["HELLOPRIVACY_API_KEY"] = "helloprivacy-test-key"

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.database import Base, get_db
from app.main import app
from app.models import Subscriber


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database for each test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test database"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def subscriber(db_session: AsyncSession) -> Subscriber:
    """Free-tier subscriber who has never scanned"""
    subscriber = Subscriber(email="jane@example.com", tier="free", country_code="us")
    db_session.add(subscriber)
    await db_session.commit()
    await db_session.refresh(subscriber)
    return subscriber


@pytest.fixture
async def scanned_subscriber(db_session: AsyncSession) -> Subscriber:
    """Free-tier subscriber with OneRep profile 42"""
    subscriber = Subscriber(
        email="sam@example.com",
        tier="free",
        country_code="us",
        onerep_profile_id=42,
    )
    db_session.add(subscriber)
    await db_session.commit()
    await db_session.refresh(subscriber)
    return subscriber


@pytest.fixture
def auth_headers(subscriber: Subscriber) -> dict:
    return {"X-Subscriber-Id": str(subscriber.id), "X-Client-Region": "US"}
