"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

_TEST_DIR = tempfile.mkdtemp(prefix="safaconnect_test_")
os.environ["CONNECT_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["CONNECT_JWT_SECRET"] = "test-secret-0123456789abcdef0123456789abcdef"
os.environ["CONNECT_JWT_ALGORITHM"] = "HS256"
os.environ["CONNECT_LOG_FORMAT"] = "console"
os.environ["CONNECT_EMAIL_PROVIDER"] = "smtp"
os.environ["CONNECT_FRONTEND_BASE_URL"] = "http://frontend.test"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from safaconnect.auth.jwt import reset_keys  # noqa: E402
from safaconnect.config import get_settings  # noqa: E402
from safaconnect.database import close_db, get_engine, init_db  # noqa: E402
from safaconnect.db.base import Base  # noqa: E402
from safaconnect.db.models import GlobalRole  # noqa: E402
from safaconnect.email.service import EmailService  # noqa: E402
from safaconnect.main import create_app  # noqa: E402
from safaconnect.redis_client import get_redis  # noqa: E402
from tests.helpers import bearer, create_user, last_verification_token, login, register  # noqa: E402


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def getdel(self, key: str) -> str | None:
        self.ttls.pop(key, None)
        return self.store.pop(key, None)

    async def delete(self, *keys: str) -> int:
        return sum(1 for k in keys if self.store.pop(k, None) is not None)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.store.clear()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def mock_email_service(monkeypatch: pytest.MonkeyPatch) -> EmailService:
    """Email service with a mocked ``send_template``; link builders stay real."""
    service = EmailService(provider=AsyncMock())
    service.send_template = AsyncMock(return_value=True)  # type: ignore[method-assign]
    monkeypatch.setattr("safaconnect.auth.jobs.get_email_service", lambda: service)
    return service


@pytest_asyncio.fixture
async def client(fake_redis: FakeRedis, mock_email_service: EmailService) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against a fresh SQLite schema."""
    get_settings.cache_clear()
    reset_keys()
    settings = get_settings()

    app = create_app()
    app.dependency_overrides[get_redis] = lambda: fake_redis

    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await close_db()


# ---------------------------------------------------------------------------
# Authenticated fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def verified_user(client: AsyncClient, mock_email_service: EmailService) -> dict[str, Any]:
    """Register through the API, verify the email, and log in."""
    user = await register(client)
    token = last_verification_token(mock_email_service)
    response = await client.get(f"/auth/verify-email/{token}")
    assert response.status_code == 200, response.text
    tokens = await login(client, "alice@example.com")
    return {"user": user, "tokens": tokens, "headers": bearer(tokens)}


@pytest_asyncio.fixture
async def admin_user(client: AsyncClient) -> dict[str, Any]:
    user = await create_user("admin@example.com", "admin", role=GlobalRole.ADMIN)
    tokens = await login(client, "admin@example.com")
    return {"user": {"id": user.id}, "tokens": tokens, "headers": bearer(tokens)}
