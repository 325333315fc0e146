"""Tests for admin API keys: one-time plaintext, hashing, toggling and deletion."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from marketadmin.models.api_key import ApiKey
from marketadmin.models.audit_log import AuditLog
from marketadmin.services.api_keys import hash_key

from tests.conftest import async_session_maker


async def _create(client: AsyncClient, headers: dict, name: str, permissions=None):
    return await client.post(
        "/api/v1/admin/settings/api-keys",
        headers=headers,
        json={"name": name, "permissions": permissions or []},
    )


@pytest.mark.asyncio
async def test_create_returns_key_once_and_stores_hash(client: AsyncClient, admin_headers):
    resp = await _create(client, admin_headers, "CI deploy", ["read:subscriptions", "read:users"])
    assert resp.status_code == 201
    data = resp.json()
    key = data["key"]
    assert key.startswith("sk_live_")
    assert data["key_preview"] == key[:12] + "..."
    assert data["permissions"] == ["read:subscriptions", "read:users"]
    assert data["is_active"] is True

    async with async_session_maker() as session:
        row = await session.get(ApiKey, data["id"])
    assert row.key_hash == hash_key(key)
    assert key not in (row.key_hash, row.key_prefix)

    resp = await client.get("/api/v1/admin/settings/api-keys", headers=admin_headers)
    assert resp.status_code == 200
    listed = resp.json()
    assert [k["name"] for k in listed] == ["CI deploy"]
    assert set(listed[0]) == {"id", "name", "key_preview", "permissions", "is_active", "created_at"}


@pytest.mark.asyncio
async def test_duplicate_name_is_rejected(client: AsyncClient, admin_headers):
    assert (await _create(client, admin_headers, "Reporting")).status_code == 201
    resp = await _create(client, admin_headers, "  reporting ")
    assert resp.status_code == 400
    assert resp.json()["message"] == "API key with this name already exists"


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "   ", "x" * 101])
async def test_invalid_name_is_rejected(client: AsyncClient, admin_headers, name):
    resp = await _create(client, admin_headers, name)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_argument"


@pytest.mark.asyncio
async def test_unknown_permission_is_rejected(client: AsyncClient, admin_headers):
    resp = await _create(client, admin_headers, "Bad", ["delete:everything"])
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_toggle_and_delete(client: AsyncClient, admin, admin_headers):
    key_id = (await _create(client, admin_headers, "Temp")).json()["id"]

    resp = await client.patch(
        f"/api/v1/admin/settings/api-keys/{key_id}", headers=admin_headers, json={"is_active": False}
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    resp = await client.delete(f"/api/v1/admin/settings/api-keys/{key_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["deleted_key"] == {"id": key_id, "name": "Temp"}

    resp = await client.delete(f"/api/v1/admin/settings/api-keys/{key_id}", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "API key not found"

    async with async_session_maker() as session:
        r = await session.execute(
            select(AuditLog.action).where(AuditLog.resource_id == key_id).order_by(AuditLog.id)
        )
        actions = list(r.scalars().all())
        assert await session.get(ApiKey, key_id) is None
    assert actions == ["api_key.create", "api_key.update", "api_key.delete"]


@pytest.mark.asyncio
async def test_patch_unknown_key_is_not_found(client: AsyncClient, admin_headers):
    resp = await client.patch(
        "/api/v1/admin/settings/api-keys/missing", headers=admin_headers, json={"is_active": True}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_api_keys_require_admin(client: AsyncClient, member_headers):
    resp = await client.get("/api/v1/admin/settings/api-keys", headers=member_headers)
    assert resp.status_code == 403
    resp = await _create(client, member_headers, "Nope")
    assert resp.status_code == 403
