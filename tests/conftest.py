import os

# Settings are read at import time, so the environment must be in place first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENCRYPTION_KEY", "0123456789abcdef" * 4)
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")

import httpx
import pytest
import pytest_asyncio

from core.orm import Database
from providers.schemas import OAuthTokens


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'calendar.db'}")
    await db.create_schema()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def fresh_tokens() -> OAuthTokens:
    return OAuthTokens(access_token="access-1", refresh_token="refresh-1", expires_at=None)


class RecordingTransport:
    """
    Wraps a handler in an httpx.MockTransport and keeps every request it saw.
    """

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def _record(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._record))


@pytest.fixture
def recording_transport():
    return RecordingTransport


@pytest_asyncio.fixture
async def api_client(database):
    from main import app

    app.state.database = database
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
