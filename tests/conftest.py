"""Shared test fixtures."""

import os

# Settings require a secret; set it before anything imports config.settings
os.environ.setdefault("JWT_SECRET", "test-secret-do-not-use-in-prod")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.da_gateway.auth.jwt_handler import create_access_token  # noqa: E402
from src.main import app  # noqa: E402


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints (lifespan not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    token = create_access_token("staff-admin", "ADMIN", {})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def viewer_headers() -> dict[str, str]:
    """Staff who may only view every resource."""
    permissions = {
        resource: {"view": True, "edit": False, "delete": False}
        for resource in ("pnl", "wallets", "referrals", "plans")
    }
    token = create_access_token("staff-viewer", "SUPPORT", permissions)
    return {"Authorization": f"Bearer {token}"}
