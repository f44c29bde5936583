# tests/conftest.py
import asyncio
import os
import sys

# Settings are read at import time, so the test environment must exist before any hifz import.
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("RATE_LIMITER_REDIS_URL", "memory://")

import httpx
import pytest
import pytest_asyncio

from hifz.backend.api.dependencies import get_db_client, get_realtime_hub
from hifz.backend.api.utilities.limiter import limiter
from hifz.backend.main import app
from hifz.backend.models.db_models import User, ROLE_ADMIN, ROLE_TEACHER
from hifz.backend.realtime.hub import RealtimeHub
from tests.fakes import ADMIN_PASSWORD, TEACHER_PASSWORD, InMemoryDbClient

# This is the crucial fix for Windows asyncio issues with pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def db_client() -> InMemoryDbClient:
    return InMemoryDbClient()


@pytest.fixture
def hub() -> RealtimeHub:
    return RealtimeHub()


@pytest.fixture
def admin_user(db_client) -> User:
    return db_client.add_user("Admin", "admin@hifz.test", ADMIN_PASSWORD, ROLE_ADMIN, phone_number="1000000001")


@pytest.fixture
def teacher_user(db_client) -> User:
    return db_client.add_user("Ustadh Bilal", "bilal@hifz.test", TEACHER_PASSWORD, ROLE_TEACHER, phone_number="5550001")


@pytest_asyncio.fixture
async def api_client(db_client, hub):
    """An httpx client bound to the app, with the store and hub replaced by in-memory fakes."""
    app.dependency_overrides[get_db_client] = lambda: db_client
    app.dependency_overrides[get_realtime_hub] = lambda: hub
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
