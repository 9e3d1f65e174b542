import os
import tempfile

# Configure before the application modules read their settings
_TEST_DIR = tempfile.mkdtemp(prefix="canteen-gate-tests-")
os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["MAINTENANCE_POLL_INTERVAL_SECONDS"] = "60"
os.environ["STATUS_CACHE_TTL_SECONDS"] = "30"
os.environ.pop("IDENTITY_SERVICE_URL", None)
os.environ.pop("ADMIN_ROLES", None)

import anyio
import httpx
import pytest
from fastapi.testclient import TestClient

from canteen_gate import models  # noqa: F401
from canteen_gate.database import Base, engine
from canteen_gate.main import app
from canteen_gate.services.cache import get_status_cache
from canteen_gate.services.identity import reset_identity_provider


async def _reset_database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fresh_state():
    """Empty settings table, empty status cache, reseeded demo users."""
    anyio.run(_reset_database)
    get_status_cache().clear()
    reset_identity_provider()
    app.state.maintenance_gate.invalidate()
    yield
    get_status_cache().clear()
    reset_identity_provider()
    app.state.maintenance_gate.invalidate()


@pytest.fixture
def client(fresh_state):
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def async_client(fresh_state):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def as_user():
    """Headers identifying the caller as the given user id."""
    def headers(user_id, **extra):
        return {"X-User-Id": str(user_id), **extra}
    return headers
