"""Registration endpoint tests."""

from httpx import AsyncClient
from sqlalchemy import select

from safaconnect.auth.tokens import hash_token
from safaconnect.database import session_scope
from safaconnect.db.models import TokenType, User, VerificationToken
from tests.helpers import PASSWORD, last_verification_token, register, sent_templates


class TestRegister:
    async def test_register_success(self, client: AsyncClient):
        response = await client.post(
            "/auth/register",
            json={
                "email": "alice@example.com",
                "username": "alice",
                "password": PASSWORD,
                "full_name": "Alice Example",
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        user = body["data"]
        assert user["email"] == "alice@example.com"
        assert user["username"] == "alice"
        assert user["full_name"] == "Alice Example"
        assert user["global_role"] == "USER"
        assert user["is_email_verified"] is False
        assert user["is_active"] is True
        assert "password_hash" not in user

    async def test_register_sends_welcome_email(self, client: AsyncClient, mock_email_service):
        await register(client)
        assert sent_templates(mock_email_service) == ["welcome"]
        to, _template, context = mock_email_service.send_template.call_args.args
        assert to == "alice@example.com"
        assert context["verify_url"].startswith("http://frontend.test/auth/verify-email/")

    async def test_only_token_digest_is_stored(self, client: AsyncClient, mock_email_service):
        await register(client)
        raw = last_verification_token(mock_email_service)
        async with session_scope() as db:
            rows = (await db.execute(select(VerificationToken))).scalars().all()
        assert len(rows) == 1
        assert rows[0].type == TokenType.EMAIL_VERIFICATION.value
        assert rows[0].token == hash_token(raw)
        assert rows[0].token != raw
        assert rows[0].used_at is None

    async def test_password_is_hashed(self, client: AsyncClient):
        await register(client)
        async with session_scope() as db:
            user = (await db.execute(select(User))).scalar_one()
        assert user.password_hash.startswith("$argon2id$")

    async def test_duplicate_email(self, client: AsyncClient):
        await register(client)
        response = await client.post(
            "/auth/register",
            json={"email": "alice@example.com", "username": "alice2", "password": PASSWORD},
        )
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Email already registered"}

    async def test_duplicate_username(self, client: AsyncClient):
        await register(client)
        response = await client.post(
            "/auth/register",
            json={"email": "other@example.com", "username": "alice", "password": PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Username already taken"

    async def test_weak_password(self, client: AsyncClient, mock_email_service):
        response = await client.post(
            "/auth/register",
            json={"email": "alice@example.com", "username": "alice", "password": "weakpass"},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert sent_templates(mock_email_service) == []

    async def test_invalid_username(self, client: AsyncClient):
        response = await client.post(
            "/auth/register",
            json={"email": "alice@example.com", "username": "a b", "password": PASSWORD},
        )
        assert response.status_code == 400
        assert "Username" in response.json()["message"]

    async def test_invalid_email(self, client: AsyncClient):
        response = await client.post(
            "/auth/register",
            json={"email": "not-an-email", "username": "alice", "password": PASSWORD},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation error"
        assert [e["field"] for e in body["errors"]] == ["email"]

    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post("/auth/register", json={"email": "alice@example.com"})
        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert fields == {"username", "password"}

    async def test_email_is_trimmed(self, client: AsyncClient):
        user = await register(client, email="  alice@example.com ", username=" alice ")
        assert user["email"] == "alice@example.com"
        assert user["username"] == "alice"
