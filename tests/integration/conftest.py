"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session.

Pre-condition: a PostgreSQL reachable at DATABASE_URL with `alembic upgrade
head` applied. When it is not reachable, every integration test is skipped.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError

from src.lc_common.database import engine
from src.main import app

_CREATE_LEDGER_SQL = text("""
    INSERT INTO ledgers (name) VALUES (:name) RETURNING id
""")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM ledgers LIMIT 1"))
    except (OSError, OperationalError, DBAPIError) as exc:
        pytest.skip(f"PostgreSQL with migrations applied is not reachable: {exc}")
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def ledger_headers(client: AsyncClient) -> dict[str, str]:
    """A fresh ledger per test. Ledger rows are append-only, so nothing is cleaned up."""
    async with engine.begin() as conn:
        result = await conn.execute(_CREATE_LEDGER_SQL, {"name": f"it_{uuid.uuid4().hex[:8]}"})
        ledger_id = str(result.scalar_one())
    return {"X-Ledger-Id": ledger_id}
