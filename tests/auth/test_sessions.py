"""Refresh, logout, and bearer authentication tests."""

import uuid
from datetime import timedelta

import jwt
import pytest
from httpx import AsyncClient

from safaconnect.auth.jwt import create_access_token
from safaconnect.config import get_settings
from tests.helpers import bearer, login


def _session_id(access_token: str) -> str:
    return jwt.decode(access_token, options={"verify_signature": False})["sid"]


class TestRefresh:
    async def test_refresh_rotates_refresh_token(self, client: AsyncClient, verified_user):
        old = verified_user["tokens"]
        response = await client.post("/auth/refresh", json={"refresh_token": old["refresh_token"]})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["refresh_token"] != old["refresh_token"]
        assert _session_id(data["access_token"]) == _session_id(old["access_token"])

        me = await client.get("/auth/me", headers=bearer(data))
        assert me.status_code == 200

    async def test_rotated_token_cannot_be_replayed(self, client: AsyncClient, verified_user):
        old_refresh = verified_user["tokens"]["refresh_token"]
        first = await client.post("/auth/refresh", json={"refresh_token": old_refresh})
        assert first.status_code == 200
        replay = await client.post("/auth/refresh", json={"refresh_token": old_refresh})
        assert replay.status_code == 401
        assert replay.json()["message"] == "Invalid refresh token"

    async def test_unknown_refresh_token(self, client: AsyncClient):
        response = await client.post("/auth/refresh", json={"refresh_token": "nope"})
        assert response.status_code == 401

    async def test_refresh_without_rotation(
        self, client: AsyncClient, verified_user, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("CONNECT_REFRESH_TOKEN_ROTATION", "false")
        get_settings.cache_clear()
        refresh = verified_user["tokens"]["refresh_token"]
        for _ in range(2):
            response = await client.post("/auth/refresh", json={"refresh_token": refresh})
            assert response.status_code == 200
            assert response.json()["data"]["refresh_token"] == refresh
        get_settings.cache_clear()


class TestLogout:
    async def test_logout_revokes_session(self, client: AsyncClient, verified_user):
        tokens = verified_user["tokens"]
        response = await client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out successfully", "data": None}

        me = await client.get("/auth/me", headers=verified_user["headers"])
        assert me.status_code == 401
        assert me.json()["message"] == "Session has been revoked"

        refresh = await client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refresh.status_code == 401

    async def test_logout_is_idempotent(self, client: AsyncClient, verified_user):
        body = {"refresh_token": verified_user["tokens"]["refresh_token"]}
        assert (await client.post("/auth/logout", json=body)).status_code == 200
        assert (await client.post("/auth/logout", json=body)).status_code == 200

    async def test_logout_unknown_token(self, client: AsyncClient):
        response = await client.post("/auth/logout", json={"refresh_token": "unknown"})
        assert response.status_code == 200

    async def test_logout_only_ends_one_session(self, client: AsyncClient, verified_user):
        other = await login(client, "alice")
        await client.post("/auth/logout", json={"refresh_token": other["refresh_token"]})
        me = await client.get("/auth/me", headers=verified_user["headers"])
        assert me.status_code == 200


class TestBearer:
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["success"] is False

    async def test_garbage_token(self, client: AsyncClient):
        response = await client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    async def test_expired_token(self, client: AsyncClient, verified_user):
        user = verified_user["user"]
        sid = _session_id(verified_user["tokens"]["access_token"])
        expired = create_access_token(
            user["id"], user["email"], user["global_role"], sid, expires_delta=timedelta(seconds=-5)
        )
        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {expired}"})
        assert response.status_code == 401
        assert "expired" in response.json()["message"]

    async def test_token_for_unknown_session(self, client: AsyncClient, verified_user):
        user = verified_user["user"]
        token = create_access_token(user["id"], user["email"], user["global_role"], str(uuid.uuid4()))
        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
