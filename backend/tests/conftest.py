"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
import tempfile
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time; point them at throwaway infrastructure
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STORAGE_TYPE", "local")
os.environ.setdefault("STORAGE_LOCAL_PATH", tempfile.mkdtemp(prefix="author-studio-uploads-"))
os.environ.pop("REPLICATE_API_TOKEN", None)
os.environ.pop("REDIS_URL", None)

import pytest
from datetime import UTC, datetime, timedelta
from typing import AsyncGenerator
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.database.models import Base, Project, User
from infrastructure.database.connection import get_db
from core.security import TokenService
from infrastructure.config import get_settings

settings = get_settings()
token_service = TokenService(secret_key=settings.jwt_secret_key)


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """
    Factory creating committed users.

    ``make_user(tier="pro", credits=100, expires_in_days=10)``; a negative
    ``expires_in_days`` produces a lapsed subscription.
    """

    async def _make(
        tier: str = "free",
        credits: int = 10,
        expires_in_days: int | None = None,
        email: str | None = None,
    ) -> User:
        expires = None
        if expires_in_days is not None:
            expires = datetime.now(UTC) + timedelta(days=expires_in_days)
        user = User(
            id=str(uuid4()),
            email=email or f"{uuid4().hex[:8]}@example.com",
            name="Test Author",
            status="active",
            subscription_tier=tier,
            subscription_expires=expires,
            ai_credits=credits,
            lifetime_credits=credits,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
async def test_user(make_user) -> User:
    """Free-tier user with the signup allowance."""
    return await make_user(email="test@example.com")


@pytest.fixture
def make_project(db_session: AsyncSession):
    async def _make(user: User, title: str = "The Lighthouse", genre: str = "Mystery") -> Project:
        project = Project(user_id=user.id, title=title, genre=genre)
        db_session.add(project)
        await db_session.commit()
        await db_session.refresh(project)
        return project

    return _make


@pytest.fixture
async def test_project(make_project, test_user: User) -> Project:
    return await make_project(test_user)


def auth_headers_for(user: User) -> dict:
    access_token = token_service.create_access_token(user_id=user.id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user."""
    return auth_headers_for(test_user)


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Authentication headers for any user: ``headers_for(user)``."""
    return auth_headers_for
