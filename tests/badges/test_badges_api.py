"""Badge catalogue and award endpoint tests."""

import uuid
from typing import Any

from httpx import AsyncClient

from tests.helpers import create_user


async def _create_badge(client: AsyncClient, admin: dict[str, Any], name: str = "Early Adopter") -> dict[str, Any]:
    response = await client.post(
        "/badges",
        json={"name": name, "description": "Joined during beta", "image_url": "https://img.test/early.png"},
        headers=admin["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _award(client: AsyncClient, admin: dict[str, Any], user_id: str, badge_id: str):
    return await client.post(
        "/badges/award", json={"user_id": user_id, "badge_id": badge_id}, headers=admin["headers"]
    )


class TestCatalogue:
    async def test_create_badge(self, client: AsyncClient, admin_user):
        response = await client.post("/badges", json={"name": "Pioneer"}, headers=admin_user["headers"])
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Badge created successfully"
        assert body["data"]["name"] == "Pioneer"
        assert body["data"]["description"] is None

    async def test_create_requires_admin(self, client: AsyncClient, verified_user):
        response = await client.post("/badges", json={"name": "Pioneer"}, headers=verified_user["headers"])
        assert response.status_code == 403

    async def test_create_validates_name(self, client: AsyncClient, admin_user):
        response = await client.post("/badges", json={"name": ""}, headers=admin_user["headers"])
        assert response.status_code == 400

    async def test_list_is_public(self, client: AsyncClient, admin_user):
        await _create_badge(client, admin_user, "One")
        await _create_badge(client, admin_user, "Two")
        response = await client.get("/badges", params={"limit": 1})
        assert response.status_code == 200
        page = response.json()["data"]
        assert page["total"] == 2
        assert page["total_pages"] == 2
        assert len(page["data"]) == 1

    async def test_get_badge(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        response = await client.get(f"/badges/{badge['id']}")
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Early Adopter"

    async def test_get_unknown_badge(self, client: AsyncClient):
        response = await client.get(f"/badges/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Badge not found"

    async def test_update_badge(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        response = await client.put(
            f"/badges/{badge['id']}", json={"description": "Updated"}, headers=admin_user["headers"]
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["description"] == "Updated"
        assert data["name"] == "Early Adopter"

    async def test_delete_badge(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        response = await client.delete(f"/badges/{badge['id']}", headers=admin_user["headers"])
        assert response.status_code == 200
        assert (await client.get(f"/badges/{badge['id']}")).status_code == 404
        assert (await client.get("/badges")).json()["data"]["total"] == 0


class TestAwards:
    async def test_award_and_check(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        user_id = verified_user["user"]["id"]

        response = await _award(client, admin_user, user_id, badge["id"])
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user_id"] == user_id
        assert data["badge"]["id"] == badge["id"]

        check = await client.get(
            f"/badges/users/{user_id}/badges/{badge['id']}/check", headers=verified_user["headers"]
        )
        assert check.status_code == 200
        assert check.json()["data"] == {"has_badge": True}

    async def test_duplicate_award(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        user_id = verified_user["user"]["id"]
        assert (await _award(client, admin_user, user_id, badge["id"])).status_code == 201
        again = await _award(client, admin_user, user_id, badge["id"])
        assert again.status_code == 409
        assert again.json()["message"] == "User already has this badge"

    async def test_award_unknown_user_or_badge(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        missing_user = await _award(client, admin_user, str(uuid.uuid4()), badge["id"])
        assert missing_user.status_code == 404
        missing_badge = await _award(client, admin_user, verified_user["user"]["id"], str(uuid.uuid4()))
        assert missing_badge.status_code == 404

    async def test_award_requires_admin(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        response = await client.post(
            "/badges/award",
            json={"user_id": verified_user["user"]["id"], "badge_id": badge["id"]},
            headers=verified_user["headers"],
        )
        assert response.status_code == 403

    async def test_award_malformed_ids(self, client: AsyncClient, admin_user):
        response = await client.post(
            "/badges/award", json={"user_id": "x", "badge_id": "y"}, headers=admin_user["headers"]
        )
        assert response.status_code == 400
        assert {e["field"] for e in response.json()["errors"]} == {"user_id", "badge_id"}

    async def test_user_badges(self, client: AsyncClient, admin_user, verified_user):
        first = await _create_badge(client, admin_user, "First")
        second = await _create_badge(client, admin_user, "Second")
        user_id = verified_user["user"]["id"]
        await _award(client, admin_user, user_id, first["id"])
        await _award(client, admin_user, user_id, second["id"])

        response = await client.get(f"/badges/users/{user_id}", headers=verified_user["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == user_id
        assert {b["name"] for b in data["badges"]} == {"First", "Second"}

    async def test_badge_holders(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        bob = await create_user("bob@example.com", "bob")
        await _award(client, admin_user, verified_user["user"]["id"], badge["id"])
        await _award(client, admin_user, bob.id, badge["id"])

        response = await client.get(f"/badges/{badge['id']}/users", headers=verified_user["headers"])
        assert response.status_code == 200
        page = response.json()["data"]
        assert page["total"] == 2
        assert {u["username"] for u in page["data"]} == {"alice", "bob"}

    async def test_holders_require_auth(self, client: AsyncClient, admin_user):
        badge = await _create_badge(client, admin_user)
        assert (await client.get(f"/badges/{badge['id']}/users")).status_code == 401

    async def test_remove_and_reaward(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        user_id = verified_user["user"]["id"]
        await _award(client, admin_user, user_id, badge["id"])

        removed = await client.delete(f"/badges/users/{user_id}/badges/{badge['id']}", headers=admin_user["headers"])
        assert removed.status_code == 200
        assert removed.json()["message"] == "Badge removed successfully"

        check = await client.get(
            f"/badges/users/{user_id}/badges/{badge['id']}/check", headers=verified_user["headers"]
        )
        assert check.json()["data"]["has_badge"] is False

        again = await client.delete(f"/badges/users/{user_id}/badges/{badge['id']}", headers=admin_user["headers"])
        assert again.status_code == 404

        assert (await _award(client, admin_user, user_id, badge["id"])).status_code == 201

    async def test_deleted_badge_hidden_from_user(self, client: AsyncClient, admin_user, verified_user):
        badge = await _create_badge(client, admin_user)
        user_id = verified_user["user"]["id"]
        await _award(client, admin_user, user_id, badge["id"])
        await client.delete(f"/badges/{badge['id']}", headers=admin_user["headers"])

        response = await client.get(f"/badges/users/{user_id}", headers=verified_user["headers"])
        assert response.json()["data"]["badges"] == []
