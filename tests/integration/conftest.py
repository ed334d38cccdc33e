"""Integration test fixtures: HTTP client over the ASGI app."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from paystub_engine.api.app import create_app
from paystub_engine.api.dependencies import get_db_session
from paystub_engine.config import get_settings


@pytest_asyncio.fixture
async def client(session_factory, settings) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing.

    Each request gets its own session from the test engine, committed on
    success and rolled back on error like the real dependency.
    """
    app = create_app()

    async def test_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = test_db_session
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
