"""
Shared fixtures for API tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from visualizar.core.auth import AuthenticatedUser
from visualizar.core.database import Base
from visualizar.modules.books import models as books_models  # noqa: F401
from visualizar.modules.users.models import UserRole


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    db.flush = AsyncMock()
    db.add = MagicMock()
    return db


@pytest_asyncio.fixture
async def db_session():
    """
    A real session on an in-memory SQLite database with every table created.

    Used by the repository tests that need the actual SQL to run. One
    connection is shared so the in-memory database survives commits.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def admin_user():
    return AuthenticatedUser(
        id="00000000-0000-0000-0000-000000000001",
        email="admin@visualizar.app",
        role=UserRole.ADMIN,
        name="Admin",
    )


@pytest.fixture
def teacher_user():
    return AuthenticatedUser(
        id="00000000-0000-0000-0000-000000000002",
        email="docente@visualizar.app",
        role=UserRole.TEACHER,
        name="Docente",
    )


@pytest.fixture
def student_user():
    return AuthenticatedUser(
        id="00000000-0000-0000-0000-000000000003",
        email="alumno@visualizar.app",
        role=UserRole.STUDENT,
        name="Alumno",
    )
