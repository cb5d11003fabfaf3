"""Shared test fixtures.

The app is imported, not started: ASGITransport skips the lifespan, so unit
tests that override get_ledger_context never open a database connection.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for the ledger API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
