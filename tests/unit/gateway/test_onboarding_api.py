"""Tests for onboarding and invitations."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from src.gateway.app import create_app
from src.infra.store import InMemoryRecordStore
from src.shared.errors import StoreError, StoreErrorCode
from src.shared.query_filter import build_query_spec
from src.shared.timestamps import utc_now
from tests.fakes import JWT_SECRET, bearer, seed_organization, seed_user


class UserInsertFailsStore(InMemoryRecordStore):
    """Accepts organizations but fails every users insert."""

    async def insert(self, table: str, record: Any) -> dict[str, Any]:
        if table == "users":
            raise StoreError(StoreErrorCode.UNKNOWN, "disk full")
        return await super().insert(table, record)


@pytest.fixture
async def acme(store) -> str:
    org = await seed_organization(store, "Acme Corp")
    await seed_user(store, org["id"], user_id="user_admin", role="admin")
    await seed_user(store, org["id"], user_id="user_employee")
    return org["id"]


async def _invite(client, email: str = "bob@example.com", role: str = "employee") -> dict:
    resp = await client.post(
        "/api/v1/invitations",
        json={"email": email, "organizationRole": role},
        headers=bearer("user_admin"),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.smoke
class TestOnboarding:
    async def test_status_for_new_identity(self, client) -> None:
        resp = await client.get("/api/v1/onboarding", headers=bearer("user_new"))
        assert resp.status_code == 200
        assert resp.json()["data"] == {
            "isOnboarded": False,
            "organizationId": None,
            "pendingInvitations": [],
        }

    async def test_status_for_member(self, client, acme) -> None:
        resp = await client.get("/api/v1/onboarding", headers=bearer("user_employee"))
        data = resp.json()["data"]
        assert data["isOnboarded"] is True
        assert data["organizationId"] == acme

    async def test_status_requires_identity(self, client) -> None:
        resp = await client.get("/api/v1/onboarding")
        assert resp.status_code == 401

    async def test_creates_organization_and_admin(self, client) -> None:
        resp = await client.post(
            "/api/v1/onboarding",
            json={
                "organizationName": "  Initech  ",
                "organizationEmail": "hello@example.com",
                "firstName": "Peter",
            },
            headers=bearer("user_new", email="peter@example.com"),
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["organization"]["name"] == "Initech"
        assert data["user"]["id"] == "user_new"
        assert data["user"]["organizationId"] == data["organization"]["id"]
        assert data["user"]["organizationRole"] == "admin"
        assert data["user"]["email"] == "peter@example.com"
        assert data["user"]["firstName"] == "Peter"

        resp = await client.get("/api/v1/users/current", headers=bearer("user_new"))
        assert resp.json()["data"]["isAdmin"] is True

    async def test_second_onboarding_conflicts(self, client, acme) -> None:
        resp = await client.post(
            "/api/v1/onboarding",
            json={"organizationName": "Second"},
            headers=bearer("user_employee"),
        )
        assert resp.status_code == 409

    async def test_organization_name_required(self, client) -> None:
        resp = await client.post(
            "/api/v1/onboarding", json={"firstName": "Peter"}, headers=bearer("user_new")
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: organization_name"

    async def test_failed_user_insert_removes_organization(self) -> None:
        store = UserInsertFailsStore()
        app = create_app(store=store, jwt_secret=JWT_SECRET)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            resp = await ac.post(
                "/api/v1/onboarding",
                json={"organizationName": "Initech"},
                headers=bearer("user_new"),
            )
        assert resp.status_code == 500
        assert "disk full" not in resp.text
        remaining = await store.select("organizations", build_query_spec({}, ("name",)))
        assert remaining == []


@pytest.mark.smoke
class TestInvitations:
    async def test_admin_creates_invitation(self, client, acme) -> None:
        data = await _invite(client, email="Bob@Example.com")
        assert data["email"] == "bob@example.com"
        assert data["organizationId"] == acme
        assert data["invitedBy"] == "user_admin"
        assert data["status"] == "pending"
        assert data["token"]
        assert data["expiresAt"] > data["createdAt"]

    async def test_employee_cannot_invite(self, client, acme) -> None:
        resp = await client.post(
            "/api/v1/invitations",
            json={"email": "bob@example.com", "organizationRole": "employee"},
            headers=bearer("user_employee"),
        )
        assert resp.status_code == 403

    async def test_duplicate_pending_invitation(self, client, acme) -> None:
        await _invite(client)
        resp = await client.post(
            "/api/v1/invitations",
            json={"email": "BOB@example.com", "organizationRole": "admin"},
            headers=bearer("user_admin"),
        )
        assert resp.status_code == 409

    async def test_invalid_email(self, client, acme) -> None:
        resp = await client.post(
            "/api/v1/invitations",
            json={"email": "bob", "organizationRole": "employee"},
            headers=bearer("user_admin"),
        )
        assert resp.status_code == 400

    async def test_list_hides_token(self, client, acme) -> None:
        await _invite(client)
        resp = await client.get("/api/v1/invitations", headers=bearer("user_admin"))
        assert resp.status_code == 200
        invitations = resp.json()["data"]
        assert len(invitations) == 1
        assert "token" not in invitations[0]

    async def test_pending_for_invitee(self, client, acme) -> None:
        await _invite(client)
        resp = await client.get(
            "/api/v1/onboarding", headers=bearer("user_bob", email="bob@example.com")
        )
        pending = resp.json()["data"]["pendingInvitations"]
        assert len(pending) == 1
        assert pending[0]["organizationName"] == "Acme Corp"
        assert "token" not in pending[0]

        resp = await client.get(
            "/api/v1/invitations/pending", headers=bearer("user_bob", email="bob@example.com")
        )
        assert len(resp.json()["data"]) == 1

    async def test_pending_skips_invitations_of_removed_organizations(
        self, client, store, acme
    ) -> None:
        await _invite(client)
        gone = await seed_organization(store, "Gone Ltd")
        now = utc_now()
        await store.insert(
            "organization_invites",
            {
                "organization_id": gone["id"],
                "email": "bob@example.com",
                "token": "orphaned-token",
                "expires_at": now + timedelta(days=1),
                "created_at": now,
                "updated_at": now,
            },
        )
        await store.delete("organizations", gone["id"])

        resp = await client.get(
            "/api/v1/invitations/pending", headers=bearer("user_bob", email="bob@example.com")
        )
        assert resp.status_code == 200
        pending = resp.json()["data"]
        assert [p["organizationName"] for p in pending] == ["Acme Corp"]


async def _accept(client, invitation: dict, *, subject: str = "user_bob", **kwargs) -> Any:
    email = kwargs.pop("email", "bob@example.com")
    body = kwargs.pop("json", {"token": invitation.get("token")})
    return await client.post(
        f"/api/v1/invitations/{invitation['id']}/accept",
        json=body,
        headers=bearer(subject, email=email),
    )


@pytest.mark.smoke
class TestAcceptInvitation:
    async def test_accept_joins_organization(self, client, acme) -> None:
        invitation = await _invite(client, role="admin")
        resp = await _accept(client, invitation)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user"]["organizationId"] == acme
        assert data["user"]["organizationRole"] == "admin"
        assert data["user"]["email"] == "bob@example.com"
        assert data["invitation"]["status"] == "accepted"
        assert data["invitation"]["acceptedAt"]
        assert "token" not in data["invitation"]

        resp = await client.get("/api/v1/users/current", headers=bearer("user_bob"))
        assert resp.json()["data"]["organizationId"] == acme

    async def test_accepted_invitation_cannot_be_reused(self, client, acme) -> None:
        invitation = await _invite(client)
        await _accept(client, invitation)
        resp = await _accept(client, invitation, subject="user_bob2")
        assert resp.status_code == 404

    async def test_member_cannot_accept(self, client, acme) -> None:
        invitation = await _invite(client)
        resp = await _accept(client, invitation, subject="user_employee")
        assert resp.status_code == 409

    async def test_token_required(self, client, acme) -> None:
        invitation = await _invite(client, role="admin")
        resp = await _accept(client, invitation, json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required fields: token"

    async def test_wrong_token(self, client, store, acme) -> None:
        invitation = await _invite(client, role="admin")
        resp = await _accept(client, invitation, json={"token": "guessed"})
        assert resp.status_code == 404

        stored = await store.get("organization_invites", invitation["id"])
        assert stored["status"] == "pending"

    async def test_caller_without_email(self, client, acme) -> None:
        invitation = await _invite(client, role="admin")
        resp = await _accept(client, invitation, subject="user_stranger", email=None)
        assert resp.status_code == 403

        resp = await client.get("/api/v1/users/current", headers=bearer("user_stranger"))
        assert resp.json()["data"]["needsOnboarding"] is True

    async def test_email_mismatch(self, client, acme) -> None:
        invitation = await _invite(client)
        resp = await _accept(client, invitation, subject="user_eve", email="eve@example.com")
        assert resp.status_code == 403

    async def test_expired_invitation(self, client, store, acme) -> None:
        created = utc_now() - timedelta(days=8)
        invitation = await store.insert(
            "organization_invites",
            {
                "organization_id": acme,
                "email": "bob@example.com",
                "token": "expired-token",
                "expires_at": created + timedelta(days=7),
                "created_at": created,
                "updated_at": created,
            },
        )
        resp = await _accept(client, invitation)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invitation has expired"
        stored = await store.get("organization_invites", invitation["id"])
        assert stored["status"] == "expired"

    async def test_unknown_invitation(self, client) -> None:
        resp = await _accept(
            client, {"id": "6f1e2d3c-4b5a-4978-8a6b-5c4d3e2f1a0b", "token": "whatever"}
        )
        assert resp.status_code == 404
