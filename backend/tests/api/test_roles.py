"""The served role catalog must match the in-process catalog exactly."""

from __future__ import annotations

from ssms.core.permissions import Permission, Role, default_permissions_for


class TestRoleCatalog:
    async def test_public(self, client, db):
        resp = await client.get("/api/v1/roles/catalog")
        assert resp.status_code == 200

    async def test_defaults_match_in_process_catalog(self, client, db):
        body = (await client.get("/api/v1/roles/catalog")).json()
        served = {r["key"]: r["default_permissions"] for r in body["roles"]}
        for role in Role:
            assert served[role.value] == [p.value for p in default_permissions_for(role)]

    async def test_lists_every_permission(self, client, db):
        body = (await client.get("/api/v1/roles/catalog")).json()
        assert [p["key"] for p in body["permissions"]] == [p.value for p in Permission]

    async def test_repeated_calls_identical(self, client, db):
        first = (await client.get("/api/v1/roles/catalog")).json()
        second = (await client.get("/api/v1/roles/catalog")).json()
        assert first == second
        assert first["default_role"] == "viewer"
