"""Admin settings and API keys (persisted)."""

from fastapi import APIRouter, Request

from marketadmin.api.deps import AdminActor, DbSession
from marketadmin.models.api_key import ApiKey
from marketadmin.schemas.settings import ApiKeyCreate, ApiKeyUpdate, PlatformSettings
from marketadmin.services import api_keys
from marketadmin.services.platform_settings import load_settings, mask_secrets, update_settings
from marketadmin.services.subscription_lifecycle import as_utc

router = APIRouter(prefix="/admin/settings", tags=["admin"])

_ADMIN_ERRORS = {401: {"description": "Not authenticated"}, 403: {"description": "Administrator role required"}}


def _api_key_to_response(row: ApiKey) -> dict:
    return {
        "id": row.id,
        "name": row.name,
        "key_preview": f"{row.key_prefix}...",
        "permissions": row.permissions,
        "is_active": row.is_active,
        "created_at": as_utc(row.created_at).isoformat(),
    }


@router.get("", summary="Get platform settings", responses=_ADMIN_ERRORS)
async def get_settings(session: DbSession, actor: AdminActor) -> dict:
    """Secrets are masked; send the mask back unchanged to keep a stored secret."""
    return mask_secrets(await load_settings(session))


@router.put("", summary="Update platform settings", responses={**_ADMIN_ERRORS, 400: {"description": "Invalid settings"}})
async def put_settings(
    request: Request,
    session: DbSession,
    actor: AdminActor,
    body: PlatformSettings,
) -> dict:
    saved = await update_settings(session, body, actor.user_id, request=request)
    await session.commit()
    return {"success": True, "message": "Settings updated successfully", "settings": mask_secrets(saved)}


@router.get("/api-keys", summary="List API keys", responses=_ADMIN_ERRORS)
async def list_keys(session: DbSession, actor: AdminActor) -> list[dict]:
    return [_api_key_to_response(row) for row in await api_keys.list_api_keys(session)]


@router.post("/api-keys", status_code=201, summary="Create API key", responses={**_ADMIN_ERRORS, 400: {"description": "Invalid name"}})
async def create_key(
    request: Request,
    session: DbSession,
    actor: AdminActor,
    body: ApiKeyCreate,
) -> dict:
    """The full key is returned only in this response."""
    row, plaintext = await api_keys.create_api_key(session, body.name, body.permissions, actor.user_id, request=request)
    await session.commit()
    return {**_api_key_to_response(row), "key": plaintext}


@router.patch("/api-keys/{key_id}", summary="Enable or disable API key", responses={**_ADMIN_ERRORS, 404: {"description": "Not found"}})
async def update_key(
    request: Request,
    session: DbSession,
    actor: AdminActor,
    key_id: str,
    body: ApiKeyUpdate,
) -> dict:
    row = await api_keys.set_api_key_active(session, key_id, body.is_active, actor.user_id, request=request)
    await session.commit()
    return _api_key_to_response(row)


@router.delete("/api-keys/{key_id}", summary="Delete API key", responses={**_ADMIN_ERRORS, 404: {"description": "Not found"}})
async def delete_key(
    request: Request,
    session: DbSession,
    actor: AdminActor,
    key_id: str,
) -> dict:
    row = await api_keys.delete_api_key(session, key_id, actor.user_id, request=request)
    await session.commit()
    return {"success": True, "message": "API key deleted successfully", "deleted_key": {"id": row.id, "name": row.name}}
