"""
Grant Portal Test Configuration and Fixtures
Shared pytest fixtures for all test modules.
"""
import os

# Settings are read once at import time, so the environment has to be ready
# before anything from the backend package is imported.
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite://")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SENDGRID_API_KEY"] = ""

import tempfile
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.models import Base, Grant, Proposal, User, UserRole
from backend.services.storage import S3Storage
from backend.tasks import notifications as notification_tasks
from tests.fixtures.factories import GrantFactory, ProposalFactory, UserFactory


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async SQLite engine backed by a fresh temp file."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Background Work
# =============================================================================


@pytest.fixture(autouse=True)
def celery_delay():
    """
    Keep Celery off the network. Tests inspect the mocks to see what would
    have been queued.
    """
    with patch.object(notification_tasks.dispatch_notifications, "delay") as dispatch, patch.object(
        notification_tasks.send_verification_email, "delay"
    ) as verification:
        yield SimpleNamespace(dispatch=dispatch, verification=verification)


@pytest.fixture
def s3_client() -> MagicMock:
    return MagicMock(name="s3_client")


@pytest.fixture
def storage(s3_client) -> S3Storage:
    """Real storage adapter writing to a mocked boto3 client."""
    return S3Storage(client=s3_client, bucket="test-bucket")


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_researcher(async_session: AsyncSession) -> User:
    user = UserFactory.create(role=UserRole.RESEARCHER, first_name="Rita", last_name="Researcher")
    async_session.add(user)
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def db_reviewer(async_session: AsyncSession) -> User:
    user = UserFactory.create(role=UserRole.REVIEWER, first_name="Victor", last_name="Reviewer", department="Energy")
    async_session.add(user)
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def db_admin(async_session: AsyncSession) -> User:
    user = UserFactory.create(role=UserRole.ADMIN, first_name="Ada", last_name="Admin")
    async_session.add(user)
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def db_grant(async_session: AsyncSession) -> Grant:
    grant = GrantFactory.create(title="Clean Energy Fund")
    async_session.add(grant)
    await async_session.commit()
    return grant


@pytest_asyncio.fixture
async def db_proposal(async_session: AsyncSession, db_researcher: User, db_grant: Grant) -> Proposal:
    proposal = ProposalFactory.create(researcher=db_researcher, grant=db_grant, title="Solar Storage Study")
    async_session.add(proposal)
    await async_session.commit()
    return proposal
