"""
API test fixtures.
HTTP client wired to the test database plus bearer headers per role.
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.api.deps import create_access_token
from backend.database import get_db
from backend.main import app
from backend.models import User
from backend.services.storage import S3Storage, get_storage


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker, storage: S3Storage) -> AsyncGenerator[AsyncClient, None]:
    """
    Client whose requests run against the per-test SQLite database. Each
    request gets its own session, committed or rolled back like production.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def researcher_headers(db_researcher: User) -> dict[str, str]:
    return bearer(db_researcher)


@pytest.fixture
def reviewer_headers(db_reviewer: User) -> dict[str, str]:
    return bearer(db_reviewer)


@pytest.fixture
def admin_headers(db_admin: User) -> dict[str, str]:
    return bearer(db_admin)
