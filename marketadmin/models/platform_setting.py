from __future__ import annotations

from datetime import datetime
from sqlalchemy import JSON, String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from marketadmin.db.base import Base, utcnow


class PlatformSetting(Base):
    __tablename__ = "platform_settings"

    section: Mapped[str] = mapped_column(String(32), primary_key=True)  # general | features | email | ...
    value: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
    updated_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
