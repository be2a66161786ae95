"""Base model classes and mixins for FinSync models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class UUIDMixin:
    """Adds a UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """Adds created_at / updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class OwnerMixin:
    """Adds the opaque owner identifier issued by the auth service."""

    owner_id: Mapped[str] = mapped_column(String(100), index=True)


class NotionSyncMixin:
    """Adds mirror columns shared by every synced finance table.

    `external_id` is always stored normalized (no dashes); rows written before
    normalization may still carry the dashed form until their next sync.
    """

    external_id: Mapped[str] = mapped_column(String(64), index=True)
    external_database_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(500), default="")
    properties_json: Mapped[dict] = mapped_column(JSON, default=dict)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )


class IconMixin:
    """Raw icon descriptor plus the mirrored, durable icon URL."""

    icon_json: Mapped[dict | None] = mapped_column(JSON, default=None)
    icon_url: Mapped[str | None] = mapped_column(String(1000), default=None)
