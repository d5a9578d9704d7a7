"""Integration tests for the tenant admin router — shared admin key required."""

from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError


class TestTenantAuth:
    async def test_list_requires_key(self, client):
        resp = await client.get("/tenants")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Invalid admin key"

    async def test_wrong_key(self, client):
        resp = await client.post(
            "/tenants",
            json={"entityId": "acme-1", "entityName": "Acme Co"},
            headers={"x-admin-key": "wrong-key"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHORIZED"

    async def test_init_requires_key(self, client):
        resp = await client.post("/tenants/init")
        assert resp.status_code == 401

    async def test_delete_requires_key(self, client):
        resp = await client.delete("/tenants/acme-1")
        assert resp.status_code == 401


class TestTenantInit:
    async def test_init(self, client, admin_headers):
        resp = await client.post("/tenants/init", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    async def test_init_twice(self, client, admin_headers):
        await client.post("/tenants/init", headers=admin_headers)
        resp = await client.post("/tenants/init", headers=admin_headers)
        assert resp.status_code == 200


class TestTenantCreate:
    async def test_create_success(self, client, admin_headers):
        resp = await client.post(
            "/tenants",
            json={"entityId": "acme-1", "entityName": "Acme Co"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["message"] == "Tenant created successfully"
        assert data["tenant"]["id"] == "tenant_acme-1"
        assert data["tenant"]["entityId"] == "acme-1"
        assert data["tenant"]["schemaName"] == "tenant_entity_acme_1"
        assert data["tenant"]["status"] == "active"

    async def test_create_existing_returns_original(self, client, admin_headers):
        await client.post(
            "/tenants",
            json={"entityId": "acme-1", "entityName": "Acme Co"},
            headers=admin_headers,
        )
        resp = await client.post(
            "/tenants",
            json={"entityId": "acme-1", "entityName": "Renamed"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Tenant already exists"
        assert data["tenant"]["entityName"] == "Acme Co"

    async def test_missing_fields(self, client, admin_headers):
        resp = await client.post(
            "/tenants", json={"entityId": "acme-1"}, headers=admin_headers
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"
        assert "entityName" in resp.json()["detail"]

    async def test_empty_fields(self, client, admin_headers):
        resp = await client.post(
            "/tenants", json={"entityId": "  ", "entityName": ""}, headers=admin_headers
        )
        assert resp.status_code == 400

    async def test_unsafe_entity_id(self, client, admin_headers):
        resp = await client.post(
            "/tenants",
            json={"entityId": "acme.1", "entityName": "Acme Co"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "entityId" in resp.json()["error"]

        listed = await client.get("/tenants", headers=admin_headers)
        assert listed.json()["tenants"] == []


class TestTenantReadUpdateDelete:
    async def _create(self, client, headers, entity_id="acme-1", name="Acme Co"):
        resp = await client.post(
            "/tenants", json={"entityId": entity_id, "entityName": name}, headers=headers
        )
        assert resp.status_code == 201
        return resp.json()["tenant"]

    async def test_list(self, client, admin_headers):
        await self._create(client, admin_headers)
        resp = await client.get("/tenants", headers=admin_headers)
        assert resp.status_code == 200
        tenants = resp.json()["tenants"]
        assert len(tenants) == 1
        assert tenants[0]["status"] == "active"
        assert "createdAt" in tenants[0]

    async def test_get(self, client, admin_headers):
        await self._create(client, admin_headers)
        resp = await client.get("/tenants/acme-1", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["tenant"]["entityName"] == "Acme Co"

    async def test_get_not_found(self, client, admin_headers):
        resp = await client.get("/tenants/nope", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["error"] == "Tenant not found"

    async def test_patch_status_and_name(self, client, admin_headers):
        await self._create(client, admin_headers)
        resp = await client.patch(
            "/tenants/acme-1",
            json={"status": "inactive", "entityName": "Acme Holdings"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        tenant = resp.json()["tenant"]
        assert tenant["status"] == "inactive"
        assert tenant["entityName"] == "Acme Holdings"

    async def test_patch_pending_rejected(self, client, admin_headers):
        await self._create(client, admin_headers)
        resp = await client.patch(
            "/tenants/acme-1", json={"status": "pending"}, headers=admin_headers
        )
        assert resp.status_code == 400

    async def test_patch_not_found(self, client, admin_headers):
        resp = await client.patch(
            "/tenants/nope", json={"status": "inactive"}, headers=admin_headers
        )
        assert resp.status_code == 404

    async def test_delete(self, client, admin_headers):
        await self._create(client, admin_headers)
        resp = await client.delete("/tenants/acme-1", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Tenant deleted successfully"
        assert data["deletedTenant"] == {
            "entityId": "acme-1",
            "entityName": "Acme Co",
            "schemaName": "tenant_entity_acme_1",
        }

        assert (await client.get("/tenants/acme-1", headers=admin_headers)).status_code == 404
        listed = await client.get("/tenants", headers=admin_headers)
        assert listed.json()["tenants"] == []

    async def test_delete_not_found(self, client, admin_headers):
        resp = await client.delete("/tenants/nope", headers=admin_headers)
        assert resp.status_code == 404


class TestTenantReconcile:
    async def test_reconcile_clean(self, client, admin_headers):
        await client.post(
            "/tenants", json={"entityId": "acme-1", "entityName": "Acme Co"},
            headers=admin_headers,
        )
        resp = await client.post("/tenants/reconcile", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["clean"] is True
        assert data["orphanedRows"] == []

    async def test_reconcile_with_options(self, client, admin_headers):
        resp = await client.post(
            "/tenants/reconcile",
            json={"repair": True, "dropLeaked": True},
            headers=admin_headers,
        )
        assert resp.status_code == 200


class TestBackendFailure:
    async def test_storage_error_is_reported(self, client, admin_headers, monkeypatch):
        from tenancy_engine.deps import get_tenant_registry

        async def broken_list():
            raise OperationalError("SELECT", {}, Exception("database unavailable"))

        monkeypatch.setattr(get_tenant_registry(), "list", broken_list)
        resp = await client.get("/tenants", headers=admin_headers)
        assert resp.status_code == 500
        assert "database unavailable" in resp.json()["error"]

    async def test_unexpected_error_uses_error_envelope(self, app, client, admin_headers, monkeypatch):
        from tenancy_engine.deps import get_tenant_registry

        async def refused_list():
            raise ConnectionRefusedError("connection to database refused")

        monkeypatch.setattr(get_tenant_registry(), "list", refused_list)
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/tenants", headers=admin_headers)
        assert resp.status_code == 500
        assert resp.headers["content-type"] == "application/json"
        assert resp.json()["error"] == "connection to database refused"
        assert resp.json()["code"] == "BACKEND_ERROR"


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
