"""Middleware tests: request ID, CORS, error envelope."""

import re

import pytest
from httpx import ASGITransport, AsyncClient

from safaconnect.errors import ConflictError
from safaconnect.main import create_app
from safaconnect.middleware.logging import REDACTED, redact_secrets


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert re.fullmatch(r"[0-9a-f]{32}", response.headers["x-request-id"])


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_request_id_on_error_responses(client: AsyncClient) -> None:
    response = await client.get("/auth/me")
    assert response.status_code == 401
    assert "x-request-id" in response.headers


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/auth/login",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization, Content-Type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert "POST" in response.headers["access-control-allow-methods"]


@pytest.mark.asyncio
async def test_cors_unknown_origin(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"Origin": "https://evil.example"})
    assert "access-control-allow-origin" not in response.headers


@pytest.mark.asyncio
async def test_404_uses_envelope(client: AsyncClient) -> None:
    """Unknown paths return 404 in the standard envelope."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}


@pytest.mark.asyncio
async def test_405_uses_envelope(client: AsyncClient) -> None:
    response = await client.delete("/health")
    assert response.status_code == 405
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_validation_error_is_400(client: AsyncClient) -> None:
    response = await client.post("/auth/login", json={"email": "alice"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation error"
    assert body["errors"] == [{"field": "password", "message": "Field required"}]


@pytest.mark.asyncio
async def test_malformed_json_is_400(client: AsyncClient) -> None:
    response = await client.post(
        "/auth/login", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_app_error_and_unhandled_exception() -> None:
    """AppError maps to its status; anything else becomes a JSON 500."""
    app = create_app()

    @app.get("/conflict")
    async def conflict() -> None:
        msg = "Already there"
        raise ConflictError(msg)

    @app.get("/boom")
    async def boom() -> None:
        msg = "kaboom"
        raise RuntimeError(msg)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        conflict_response = await ac.get("/conflict")
        assert conflict_response.status_code == 409
        assert conflict_response.json() == {"success": False, "message": "Already there"}

        boom_response = await ac.get("/boom")
        assert boom_response.status_code == 500
        assert boom_response.json() == {"success": False, "message": "Internal server error"}


def test_log_redaction() -> None:
    event = {"event": "login_failed", "password": "hunter2", "refresh_token": "abc", "user_id": "u1", "token": None}
    redacted = redact_secrets(None, "info", event)
    assert redacted["password"] == REDACTED
    assert redacted["refresh_token"] == REDACTED
    assert redacted["user_id"] == "u1"
    assert redacted["token"] is None
