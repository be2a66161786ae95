"""Finance mirror tables: assets, places and the investments that reference both."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IconMixin, NotionSyncMixin, OwnerMixin, TimestampMixin, UUIDMixin


class EntityKind(str, enum.Enum):
    """The three interdependent finance entity kinds, in sync order."""

    ASSET = "asset"
    PLACE = "place"
    INVESTMENT = "investment"

    @classmethod
    def parse(cls, value: str | None) -> "EntityKind | None":
        """Accept bare kind names as well as the legacy `finances_*` db types."""
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        return _KIND_ALIASES.get(key)


_KIND_ALIASES: dict[str, EntityKind] = {
    "asset": EntityKind.ASSET,
    "assets": EntityKind.ASSET,
    "finances_assets": EntityKind.ASSET,
    "place": EntityKind.PLACE,
    "places": EntityKind.PLACE,
    "finances_places": EntityKind.PLACE,
    "investment": EntityKind.INVESTMENT,
    "investments": EntityKind.INVESTMENT,
    "finances_investments": EntityKind.INVESTMENT,
}

# Investments resolve relations against assets and places, so they go last.
SYNC_ORDER: tuple[EntityKind, ...] = (EntityKind.ASSET, EntityKind.PLACE, EntityKind.INVESTMENT)


class FinanceAsset(UUIDMixin, TimestampMixin, OwnerMixin, NotionSyncMixin, IconMixin, Base):
    __tablename__ = "finance_asset"
    __table_args__ = (
        UniqueConstraint("owner_id", "external_id", name="uq_finance_asset_owner_external"),
    )

    symbol: Mapped[str | None] = mapped_column(String(50), default=None)
    current_price: Mapped[float | None] = mapped_column(Float, default=None)
    summary: Mapped[str | None] = mapped_column(Text, default=None)

    investments: Mapped[list["FinanceInvestment"]] = relationship(back_populates="asset")

    def __repr__(self) -> str:
        return f"<FinanceAsset {self.name!r}>"


class FinancePlace(UUIDMixin, TimestampMixin, OwnerMixin, NotionSyncMixin, IconMixin, Base):
    __tablename__ = "finance_place"
    __table_args__ = (
        UniqueConstraint("owner_id", "external_id", name="uq_finance_place_owner_external"),
    )

    place_type: Mapped[str | None] = mapped_column(String(100), default=None)
    balance: Mapped[float | None] = mapped_column(Float, default=None)
    total_value: Mapped[float | None] = mapped_column(Float, default=None)

    investments: Mapped[list["FinanceInvestment"]] = relationship(back_populates="place")

    def __repr__(self) -> str:
        return f"<FinancePlace {self.name!r}>"


class FinanceInvestment(UUIDMixin, TimestampMixin, OwnerMixin, NotionSyncMixin, Base):
    __tablename__ = "finance_investment"
    __table_args__ = (
        UniqueConstraint("owner_id", "external_id", name="uq_finance_investment_owner_external"),
    )

    asset_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("finance_asset.id", ondelete="SET NULL"),
        default=None, index=True
    )
    place_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("finance_place.id", ondelete="SET NULL"),
        default=None, index=True
    )
    quantity: Mapped[float | None] = mapped_column(Float, default=None)
    purchase_price: Mapped[float | None] = mapped_column(Float, default=None)
    purchase_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    current_price: Mapped[float | None] = mapped_column(Float, default=None)
    current_value: Mapped[float | None] = mapped_column(Float, default=None)
    currency: Mapped[str | None] = mapped_column(String(10), default=None)

    asset: Mapped[FinanceAsset | None] = relationship(back_populates="investments")
    place: Mapped[FinancePlace | None] = relationship(back_populates="investments")

    def __repr__(self) -> str:
        return f"<FinanceInvestment {self.name!r}>"


MODEL_BY_KIND: dict[EntityKind, type[FinanceAsset] | type[FinancePlace] | type[FinanceInvestment]] = {
    EntityKind.ASSET: FinanceAsset,
    EntityKind.PLACE: FinancePlace,
    EntityKind.INVESTMENT: FinanceInvestment,
}
