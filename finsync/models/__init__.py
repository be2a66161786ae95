"""FinSync models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin, OwnerMixin, NotionSyncMixin, IconMixin
from .finance import (
    EntityKind,
    FinanceAsset,
    FinanceInvestment,
    FinancePlace,
    MODEL_BY_KIND,
    SYNC_ORDER,
)
from .link import NotionDatabaseLink

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "OwnerMixin",
    "NotionSyncMixin",
    "IconMixin",
    "EntityKind",
    "FinanceAsset",
    "FinancePlace",
    "FinanceInvestment",
    "MODEL_BY_KIND",
    "SYNC_ORDER",
    "NotionDatabaseLink",
]
