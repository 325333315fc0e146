"""
Persisted platform settings, one row per section.

Defaults are written on startup for sections that have no row yet; reads merge the
stored values over the defaults so newly added fields get a value.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketadmin.models.platform_setting import PlatformSetting
from marketadmin.schemas.settings import PlatformSettings
from marketadmin.services.audit import log_action

logger = logging.getLogger(__name__)

SECRET_MASK = "********"
SECRET_FIELDS: dict[str, tuple[str, ...]] = {
    "email": ("smtp_password",),
    "storage": ("s3_secret_key", "s3_access_key"),
}
SECTIONS = tuple(PlatformSettings.model_fields)


async def _rows(session: AsyncSession) -> dict[str, PlatformSetting]:
    r = await session.execute(select(PlatformSetting))
    return {row.section: row for row in r.scalars().all()}


async def seed_default_settings(session: AsyncSession) -> int:
    """Insert default rows for missing sections. Returns the number inserted."""
    existing = await _rows(session)
    defaults = PlatformSettings().model_dump()
    inserted = 0
    for section in SECTIONS:
        if section not in existing:
            session.add(PlatformSetting(section=section, value=defaults[section]))
            inserted += 1
    if inserted:
        await session.flush()
        logger.info("Seeded %d default settings sections", inserted)
    return inserted


async def load_settings(session: AsyncSession) -> PlatformSettings:
    rows = await _rows(session)
    data = PlatformSettings().model_dump()
    for section, row in rows.items():
        if section in data and isinstance(row.value, dict):
            data[section].update(row.value)
    return PlatformSettings.model_validate(data)


def mask_secrets(values: PlatformSettings) -> dict:
    data = values.model_dump()
    for section, fields in SECRET_FIELDS.items():
        for field in fields:
            if data[section].get(field):
                data[section][field] = SECRET_MASK
    return data


async def update_settings(
    session: AsyncSession, new: PlatformSettings, actor_id: int, request=None
) -> PlatformSettings:
    """Replace all sections. A masked secret in the input keeps the stored secret."""
    current = await load_settings(session)
    current_data = current.model_dump()
    data = new.model_dump()
    for section, fields in SECRET_FIELDS.items():
        for field in fields:
            if data[section].get(field) == SECRET_MASK:
                data[section][field] = current_data[section].get(field, "")

    rows = await _rows(session)
    changed = []
    for section in SECTIONS:
        row = rows.get(section)
        if row is None:
            session.add(PlatformSetting(section=section, value=data[section], updated_by=actor_id))
            changed.append(section)
        elif row.value != data[section]:
            row.value = data[section]
            row.updated_by = actor_id
            changed.append(section)
    await session.flush()
    if changed:
        await log_action(
            session, actor_id, "settings.update", "settings", details={"sections": changed}, request=request
        )
    return PlatformSettings.model_validate(data)
