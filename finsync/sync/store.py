"""Target store for mirrored finance rows.

All lookups accept either id form; writes always persist the normalized form,
so legacy dashed rows are migrated the next time their record is synced.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.finance import MODEL_BY_KIND, EntityKind, FinanceAsset
from .ids import normalize_external_id

log = logging.getLogger(__name__)

# Columns owned by the store itself; mapped rows may not override them.
_PROTECTED_COLUMNS = frozenset({"id", "owner_id", "external_id", "external_database_id",
                                "icon_url", "created_at", "updated_at", "last_synced_at"})


class UpsertError(Exception):
    pass


class DeleteError(Exception):
    pass


@dataclass(frozen=True)
class StoredRef:
    id: uuid.UUID
    external_id: str
    updated_at: datetime | None


def _id_forms(external_ids: Iterable[str]) -> list[str]:
    forms: set[str] = set()
    for ext in external_ids:
        if not isinstance(ext, str) or not ext.strip():
            continue
        forms.add(ext.strip())
        forms.add(normalize_external_id(ext))
    return sorted(forms)


class FinanceStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_external_ids(
        self, kind: EntityKind, owner_id: str, database_id: str
    ) -> list[str]:
        model = MODEL_BY_KIND[kind]
        stmt = select(model.external_id).where(
            model.owner_id == owner_id,
            or_(
                model.external_database_id == database_id,
                model.external_database_id == normalize_external_id(database_id),
            ),
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def find_id_by_external_id(
        self, kind: EntityKind, owner_id: str, external_id: str
    ) -> uuid.UUID | None:
        """Exact-match lookup; callers decide which id form to try."""
        model = MODEL_BY_KIND[kind]
        stmt = (
            select(model.id)
            .where(model.owner_id == owner_id, model.external_id == external_id)
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_asset_current_price(self, owner_id: str, asset_id: uuid.UUID) -> float | None:
        stmt = select(FinanceAsset.current_price).where(
            FinanceAsset.owner_id == owner_id, FinanceAsset.id == asset_id
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def upsert_rows(
        self,
        kind: EntityKind,
        owner_id: str,
        database_id: str,
        rows: list[dict[str, Any]],
    ) -> list[StoredRef]:
        """Insert or fully overwrite rows keyed by (owner, normalized external id).

        Each row must carry `external_id`; any other key naming a model column
        is written as-is. The durable `icon_url` is never touched here.
        """
        model = MODEL_BY_KIND[kind]
        now = datetime.now(timezone.utc)
        db_id = normalize_external_id(database_id)

        try:
            forms = _id_forms(row["external_id"] for row in rows)
            existing_by_norm: dict[str, Any] = {}
            duplicates: list[Any] = []
            if forms:
                stmt = select(model).where(model.owner_id == owner_id, model.external_id.in_(forms))
                for obj in (await self.db.execute(stmt)).scalars().all():
                    norm = normalize_external_id(obj.external_id)
                    kept = existing_by_norm.get(norm)
                    if kept is None:
                        existing_by_norm[norm] = obj
                    elif obj.external_id == norm:
                        duplicates.append(kept)
                        existing_by_norm[norm] = obj
                    else:
                        duplicates.append(obj)

            # A legacy dashed row next to its normalized twin: keep the normalized one.
            if duplicates:
                log.warning(
                    "Dropping %d legacy %s rows shadowed by normalized ids for %s",
                    len(duplicates), kind.value, owner_id,
                )
                for obj in duplicates:
                    await self.db.delete(obj)
                await self.db.flush()

            touched: list[Any] = []
            for row in rows:
                norm = normalize_external_id(row["external_id"])
                if not norm:
                    continue
                obj = existing_by_norm.get(norm)
                if obj is None:
                    obj = model(owner_id=owner_id, external_id=norm)
                    self.db.add(obj)
                    existing_by_norm[norm] = obj

                obj.external_id = norm
                obj.external_database_id = db_id
                for key, value in row.items():
                    if key in _PROTECTED_COLUMNS or not hasattr(model, key):
                        continue
                    setattr(obj, key, value)
                obj.updated_at = now
                obj.last_synced_at = now
                touched.append(obj)

            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UpsertError(f"Failed to upsert {kind.value} rows: {exc}") from exc

        return [StoredRef(id=obj.id, external_id=obj.external_id, updated_at=obj.updated_at) for obj in touched]

    async def set_icon_url(self, kind: EntityKind, row_id: uuid.UUID, icon_url: str) -> None:
        model = MODEL_BY_KIND[kind]
        try:
            await self.db.execute(update(model).where(model.id == row_id).values(icon_url=icon_url))
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise UpsertError(f"Failed to store icon URL for {kind.value} {row_id}: {exc}") from exc

    async def delete_external_ids(
        self,
        kind: EntityKind,
        owner_id: str,
        database_id: str,
        external_ids: list[str],
    ) -> int:
        if not external_ids:
            return 0
        model = MODEL_BY_KIND[kind]
        stmt = delete(model).where(
            model.owner_id == owner_id,
            or_(
                model.external_database_id == database_id,
                model.external_database_id == normalize_external_id(database_id),
            ),
            model.external_id.in_(_id_forms(external_ids)),
        )
        return await self._delete(kind, stmt)

    async def delete_by_external_id(
        self,
        kind: EntityKind,
        external_id: str,
        *,
        owner_id: str | None = None,
    ) -> int:
        """Delete a single record regardless of which database it came from."""
        model = MODEL_BY_KIND[kind]
        stmt = delete(model).where(model.external_id.in_(_id_forms([external_id])))
        if owner_id is not None:
            stmt = stmt.where(model.owner_id == owner_id)
        return await self._delete(kind, stmt)

    async def _delete(self, kind: EntityKind, stmt) -> int:
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise DeleteError(f"Failed to delete {kind.value} rows: {exc}") from exc
        return result.rowcount or 0
