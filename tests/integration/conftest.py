"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session. The whole directory is skipped
when PostgreSQL is not reachable.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from src.da_common.database import engine
from src.da_gateway.auth.jwt_handler import create_access_token
from src.main import app


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _require_database() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM pnl LIMIT 1"))
    except (DBAPIError, OSError) as exc:
        pytest.skip(f"PostgreSQL not available: {exc.__class__.__name__}")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    token = create_access_token("staff-it", "ADMIN", {})
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": f"Bearer {token}"},
    ) as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def make_user():
    """Insert users directly; registration is owned by another service."""

    async def _make(role: str = "CUSTOMER") -> str:
        uid = uuid.uuid4().hex[:10]
        async with engine.begin() as conn:
            result = await conn.execute(
                text("""
                    INSERT INTO users (unique_code, username, email, role, status)
                    VALUES (:code, :username, :email, :role, 'ACTIVE')
                    RETURNING id::text
                """),
                {
                    "code": f"IT{uid}",
                    "username": f"it_{uid}",
                    "email": f"it_{uid}@example.com",
                    "role": role,
                },
            )
            return str(result.scalar_one())

    return _make
