"""API keys: generation, hashed storage, activation and removal."""

from __future__ import annotations

import hashlib
import secrets

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketadmin.core.errors import InvalidArgumentError, NotFoundError
from marketadmin.models.api_key import ApiKey
from marketadmin.services.audit import log_action

KEY_PREFIX = "sk_live_"
DISPLAY_PREFIX_LEN = 12


def generate_key() -> str:
    return KEY_PREFIX + secrets.token_hex(24)


def hash_key(key: str) -> str:
    """SHA256 of the key; the plaintext is never stored."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


async def list_api_keys(session: AsyncSession) -> list[ApiKey]:
    r = await session.execute(select(ApiKey).order_by(ApiKey.created_at.desc(), ApiKey.name))
    return list(r.scalars().all())


async def create_api_key(
    session: AsyncSession, name: str, permissions: list[str], actor_id: int, request=None
) -> tuple[ApiKey, str]:
    """Returns (row, plaintext key). The plaintext is only available here."""
    name = (name or "").strip()
    if not name:
        raise InvalidArgumentError("API key name is required")
    if len(name) > 100:
        raise InvalidArgumentError("API key name must be less than 100 characters")
    r = await session.execute(select(ApiKey.id).where(func.lower(ApiKey.name) == name.lower()))
    if r.first() is not None:
        raise InvalidArgumentError("API key with this name already exists")

    plaintext = generate_key()
    row = ApiKey(
        name=name,
        key_prefix=plaintext[:DISPLAY_PREFIX_LEN],
        key_hash=hash_key(plaintext),
        permissions=sorted(set(permissions)),
        is_active=True,
        created_by=actor_id,
    )
    session.add(row)
    await session.flush()
    await log_action(
        session, actor_id, "api_key.create", "api_key", row.id,
        details={"name": name, "permissions": row.permissions}, request=request,
    )
    return row, plaintext


async def _get(session: AsyncSession, key_id: str) -> ApiKey:
    row = await session.get(ApiKey, key_id)
    if row is None:
        raise NotFoundError("API key not found")
    return row


async def set_api_key_active(
    session: AsyncSession, key_id: str, is_active: bool, actor_id: int, request=None
) -> ApiKey:
    row = await _get(session, key_id)
    if row.is_active != is_active:
        row.is_active = is_active
        await session.flush()
        await log_action(
            session, actor_id, "api_key.update", "api_key", row.id,
            details={"is_active": is_active}, request=request,
        )
    return row


async def delete_api_key(session: AsyncSession, key_id: str, actor_id: int, request=None) -> ApiKey:
    row = await _get(session, key_id)
    await session.delete(row)
    await session.flush()
    await log_action(
        session, actor_id, "api_key.delete", "api_key", key_id, details={"name": row.name}, request=request
    )
    return row
