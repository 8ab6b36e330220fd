"""Tests for the generic org-scoped CRUD routers."""

from __future__ import annotations

import pytest

from tests.fakes import bearer, seed_organization, seed_user


@pytest.fixture
async def tenants(store) -> dict[str, str]:
    """Two organizations with one employee each."""
    acme = await seed_organization(store, "Acme Corp")
    globex = await seed_organization(store, "Globex")
    await seed_user(store, acme["id"], user_id="user_acme")
    await seed_user(store, globex["id"], user_id="user_globex")
    return {"acme": acme["id"], "globex": globex["id"]}


async def _create_product(client, subject: str = "user_acme", **fields) -> dict:
    body = {"name": "Widget", "type": "component", **fields}
    resp = await client.post("/api/v1/products", json=body, headers=bearer(subject))
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.smoke
class TestCreate:
    async def test_create_scopes_to_caller_and_camelizes(self, client, tenants) -> None:
        data = await _create_product(
            client, organizationId=tenants["globex"], dataCompleteness=40
        )
        assert data["organizationId"] == tenants["acme"]
        assert data["dataCompleteness"] == 40
        assert data["status"] == "active"
        assert data["missingDataFields"] == []
        assert data["createdAt"] == data["updatedAt"]

    async def test_missing_required_field(self, client, tenants) -> None:
        resp = await client.post(
            "/api/v1/products", json={"name": "Widget"}, headers=bearer("user_acme")
        )
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Missing required fields: type",
            "statusCode": 400,
        }

    async def test_invalid_enum_value(self, client, tenants) -> None:
        resp = await client.post(
            "/api/v1/products",
            json={"name": "Widget", "type": "spaceship"},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 400

    async def test_missing_foreign_key_target(self, client, tenants) -> None:
        resp = await client.post(
            "/api/v1/components",
            json={"name": "Bolt", "productId": "6f1e2d3c-4b5a-4978-8a6b-5c4d3e2f1a0b"},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Referenced resource does not exist"

    async def test_malformed_reference_id(self, client, tenants) -> None:
        resp = await client.post(
            "/api/v1/components",
            json={"name": "Bolt", "productId": "abc"},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    async def test_creator_field_is_set(self, client, tenants) -> None:
        resp = await client.post(
            "/api/v1/documents",
            json={"originalFilename": "bom.csv", "fileSize": 2048, "mimeType": "text/csv"},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["uploadedBy"] == "user_acme"

    async def test_custom_scope_field(self, client, tenants) -> None:
        resp = await client.post(
            "/api/v1/assessment-templates",
            json={"title": "Carbon footprint", "tags": ["co2"]},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["createdByOrganizationId"] == tenants["acme"]


@pytest.mark.smoke
class TestList:
    async def test_lists_only_own_rows(self, client, tenants) -> None:
        await _create_product(client, name="Acme widget")
        await _create_product(client, "user_globex", name="Globex widget")

        resp = await client.get("/api/v1/products", headers=bearer("user_acme"))
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json()["data"]] == ["Acme widget"]

    async def test_filters_sort_and_unknown_params(self, client, tenants) -> None:
        await _create_product(client, name="b", status="active")
        await _create_product(client, name="a", status="active")
        await _create_product(client, name="c", status="archived")

        resp = await client.get(
            "/api/v1/products",
            params={"status": "active", "sort": "name:asc", "bogus": "x"},
            headers=bearer("user_acme"),
        )
        assert [p["name"] for p in resp.json()["data"]] == ["a", "b"]

    async def test_camel_case_query_names(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.post(
            "/api/v1/components",
            json={"name": "Bolt", "productId": product["id"]},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 201

        resp = await client.get(
            "/api/v1/components",
            params={"productId": product["id"], "sort": "createdAt:desc"},
            headers=bearer("user_acme"),
        )
        assert [c["name"] for c in resp.json()["data"]] == ["Bolt"]

    async def test_pagination(self, client, tenants) -> None:
        for name in ("a", "b", "c"):
            await _create_product(client, name=name)
        resp = await client.get(
            "/api/v1/products",
            params={"sort": "name", "limit": "2", "page": "2"},
            headers=bearer("user_acme"),
        )
        assert [p["name"] for p in resp.json()["data"]] == ["c"]

    async def test_invalid_typed_filter_is_400(self, client, tenants) -> None:
        resp = await client.get(
            "/api/v1/notifications", params={"isRead": "maybe"}, headers=bearer("user_acme")
        )
        assert resp.status_code == 400


@pytest.mark.smoke
class TestDetailUpdateDelete:
    async def test_get_own_row(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.get(f"/api/v1/products/{product['id']}", headers=bearer("user_acme"))
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == product["id"]

    async def test_other_tenant_reads_404(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.get(
            f"/api/v1/products/{product['id']}", headers=bearer("user_globex")
        )
        assert resp.status_code == 404
        assert resp.json()["error"] == "Resource not found"

    async def test_malformed_id_is_404(self, client, tenants) -> None:
        resp = await client.get("/api/v1/products/not-a-uuid", headers=bearer("user_acme"))
        assert resp.status_code == 404

    async def test_update_cannot_move_row(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.patch(
            f"/api/v1/products/{product['id']}",
            json={"name": "Gadget", "organizationId": tenants["globex"]},
            headers=bearer("user_acme"),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["name"] == "Gadget"
        assert data["organizationId"] == tenants["acme"]
        assert data["createdAt"] == product["createdAt"]

    async def test_update_other_tenant_is_404(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.patch(
            f"/api/v1/products/{product['id']}",
            json={"name": "Hijacked"},
            headers=bearer("user_globex"),
        )
        assert resp.status_code == 404

    async def test_empty_update_is_400(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.patch(
            f"/api/v1/products/{product['id']}", json={}, headers=bearer("user_acme")
        )
        assert resp.status_code == 400

    async def test_delete(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.delete(
            f"/api/v1/products/{product['id']}", headers=bearer("user_acme")
        )
        assert resp.status_code == 200
        assert resp.json()["data"] == {"id": product["id"], "deleted": True}

        resp = await client.get(f"/api/v1/products/{product['id']}", headers=bearer("user_acme"))
        assert resp.status_code == 404

    async def test_delete_other_tenant_is_404(self, client, tenants) -> None:
        product = await _create_product(client)
        resp = await client.delete(
            f"/api/v1/products/{product['id']}", headers=bearer("user_globex")
        )
        assert resp.status_code == 404
