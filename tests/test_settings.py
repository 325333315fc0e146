"""Tests for persisted platform settings: defaults, validation, secret masking, audit."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from marketadmin.models.audit_log import AuditLog
from marketadmin.models.platform_setting import PlatformSetting
from marketadmin.services.platform_settings import SECRET_MASK, seed_default_settings

from tests.conftest import async_session_maker


@pytest.mark.asyncio
async def test_defaults_are_seeded_once(clean_db):
    async with async_session_maker() as session:
        assert await seed_default_settings(session) == 0
        r = await session.execute(select(PlatformSetting.section))
        sections = set(r.scalars().all())
    assert sections == {"general", "features", "email", "security", "storage", "notifications"}


@pytest.mark.asyncio
async def test_get_settings_defaults(client: AsyncClient, admin_headers):
    resp = await client.get("/api/v1/admin/settings", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["general"]["site_name"] == "SaaS Blocks"
    assert data["security"]["session_timeout"] == 1440
    # Empty secrets are not masked
    assert data["email"]["smtp_password"] == ""


@pytest.mark.asyncio
async def test_settings_require_admin(client: AsyncClient, member_headers):
    resp = await client.get("/api/v1/admin/settings", headers=member_headers)
    assert resp.status_code == 403
    resp = await client.put("/api/v1/admin/settings", headers=member_headers, json={})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_update_persists_and_masks_secrets(client: AsyncClient, admin, admin_headers):
    current = (await client.get("/api/v1/admin/settings", headers=admin_headers)).json()
    current["general"]["site_name"] = "Blocks Market"
    current["email"]["smtp_password"] = "hunter2"
    resp = await client.put("/api/v1/admin/settings", headers=admin_headers, json=current)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["settings"]["general"]["site_name"] == "Blocks Market"
    assert body["settings"]["email"]["smtp_password"] == SECRET_MASK

    # Sending the mask back keeps the stored secret
    masked = (await client.get("/api/v1/admin/settings", headers=admin_headers)).json()
    assert masked["email"]["smtp_password"] == SECRET_MASK
    masked["features"]["social_login"] = False
    resp = await client.put("/api/v1/admin/settings", headers=admin_headers, json=masked)
    assert resp.status_code == 200

    async with async_session_maker() as session:
        email = await session.get(PlatformSetting, "email")
        features = await session.get(PlatformSetting, "features")
        r = await session.execute(select(AuditLog).where(AuditLog.action == "settings.update").order_by(AuditLog.id))
        entries = r.scalars().all()
    assert email.value["smtp_password"] == "hunter2"
    assert features.value["social_login"] is False
    assert features.updated_by == admin.id
    assert [e.details["sections"] for e in entries] == [["general", "email"], ["features"]]


@pytest.mark.asyncio
async def test_partial_body_fills_defaults(client: AsyncClient, admin_headers):
    resp = await client.put(
        "/api/v1/admin/settings", headers=admin_headers, json={"general": {"site_name": "Only Name"}}
    )
    assert resp.status_code == 200
    settings = resp.json()["settings"]
    assert settings["general"]["site_name"] == "Only Name"
    assert settings["general"]["admin_email"] == "admin@saasblocks.com"
    assert settings["storage"]["max_file_size"] == 10


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "section, field, value",
    [
        ("general", "site_name", "   "),
        ("general", "admin_email", "not-an-email"),
        ("email", "smtp_port", 70000),
        ("security", "session_timeout", 10),
        ("security", "password_min_length", 4),
        ("storage", "max_file_size", 500),
    ],
)
async def test_invalid_settings_rejected(client: AsyncClient, admin_headers, section, field, value):
    resp = await client.put(
        "/api/v1/admin/settings", headers=admin_headers, json={section: {field: value}}
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_argument"

    # Nothing was written
    stored = (await client.get("/api/v1/admin/settings", headers=admin_headers)).json()
    assert stored[section][field] != value
