"""Pytest configuration and fixtures for async testing."""
import os

# Configure the app for tests before anything imports jewelry_store.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENABLE_TRACING", "false")

from typing import AsyncGenerator  # noqa: E402

import pytest_asyncio  # noqa: E402
from fastapi import Depends  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import jewelry_store.models  # noqa: E402,F401
from jewelry_store.api.deps import get_current_admin, get_db  # noqa: E402
from jewelry_store.database import Base  # noqa: E402
from jewelry_store.main import app  # noqa: E402
from jewelry_store.models.admin import Admin  # noqa: E402
from jewelry_store.services.auth_service import AuthService  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fresh in-memory database and session for each test.

    A single shared connection (StaticPool) keeps the in-memory database alive
    for the whole test.

    Yields:
        AsyncSession: Database session for testing
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def admin(db_session: AsyncSession) -> Admin:
    """Active admin with a known password."""
    admin = await AuthService(db_session).create_admin(ADMIN_EMAIL, ADMIN_PASSWORD, "Test Admin")
    await db_session.commit()
    return admin


@pytest_asyncio.fixture(scope="function")
async def api_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to the test database. Authentication is real: requests
    need a bearer token.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_client(api_client: AsyncClient, admin: Admin) -> AsyncClient:
    """HTTP client already authenticated as ``admin``."""
    admin_id = admin.id

    async def override_current_admin(db: AsyncSession = Depends(get_db)) -> Admin:
        # Reload through the session: a rollback inside a request expires the instance
        return await db.get(Admin, admin_id)

    app.dependency_overrides[get_current_admin] = override_current_admin
    return api_client
