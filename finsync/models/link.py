"""Which external database backs each finance entity kind, per owner."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, OwnerMixin, TimestampMixin, UUIDMixin


class NotionDatabaseLink(UUIDMixin, TimestampMixin, OwnerMixin, Base):
    __tablename__ = "notion_database_link"
    __table_args__ = (
        UniqueConstraint("owner_id", "kind", name="uq_notion_database_link_owner_kind"),
    )

    kind: Mapped[str] = mapped_column(String(20), index=True)  # asset, place, investment
    database_id: Mapped[str] = mapped_column(String(64), index=True)
    database_name: Mapped[str | None] = mapped_column(String(300), default=None)

    # Schema snapshot taken when the link was created (informational only; every
    # sync re-reads the live schema).
    properties_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<NotionDatabaseLink {self.owner_id!r}:{self.kind}>"
