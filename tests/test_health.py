"""Health endpoint tests."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": None, "data": {"status": "healthy"}}


@pytest.mark.asyncio
async def test_readiness(client: AsyncClient) -> None:
    """GET /ready returns 200 with database and redis checks."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "ok"}


@pytest.mark.asyncio
async def test_readiness_degraded_when_redis_down(client: AsyncClient, fake_redis) -> None:
    fake_redis.ping = AsyncMock(side_effect=ConnectionError("redis down"))
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "degraded"
    assert data["checks"] == {"database": "ok", "redis": "error"}


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    """GET /version returns version and environment."""
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["version"] == "0.1.0"
    assert data["environment"] == "development"
