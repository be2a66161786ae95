"""Sync orchestrator - mirrors linked Notion databases into the finance tables.

Each entity kind runs its own machine:

    FETCH_SCHEMA -> FETCH_RECORDS -> DECODE_AND_RESOLVE -> UPSERT
        -> MIRROR_ICONS -> DELETE_REMOVED -> DONE

Kinds run one after another in SYNC_ORDER so investments can resolve the
assets and places committed just before them. A failing machine is reported
in its own result and never stops the next one.
"""

from __future__ import annotations

import enum
import logging
from typing import Mapping

from ..assets.icon_mirror import icon_source_url
from ..config import settings
from ..models.finance import SYNC_ORDER, EntityKind
from ..schemas.sync import EntitySyncResult
from .fetcher import ExternalRecord, fetch_all_records
from .field_mapper import MappedRecord, map_record
from .ids import normalize_external_id
from .record_diff import diff_records
from .relation_resolver import RelationResolver
from .schema_adapter import PropertySchema, fetch_schema
from .sources import IconSink, NotionSource
from .store import DeleteError, FinanceStore, StoredRef

log = logging.getLogger(__name__)


class SyncStage(str, enum.Enum):
    IDLE = "idle"
    FETCH_SCHEMA = "fetch_schema"
    FETCH_RECORDS = "fetch_records"
    DECODE_AND_RESOLVE = "decode_and_resolve"
    UPSERT = "upsert"
    MIRROR_ICONS = "mirror_icons"
    DELETE_REMOVED = "delete_removed"
    DONE = "done"


def default_icon_buckets() -> dict[EntityKind, str]:
    return {
        EntityKind.ASSET: settings.asset_icon_bucket,
        EntityKind.PLACE: settings.place_icon_bucket,
    }


class SyncEngine:
    def __init__(
        self,
        source: NotionSource,
        store: FinanceStore,
        *,
        resolver: RelationResolver | None = None,
        icon_mirror: IconSink | None = None,
        icon_buckets: Mapping[EntityKind, str] | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
    ):
        self.source = source
        self.store = store
        self.resolver = resolver or RelationResolver(
            store,
            retries=settings.relation_lookup_retries,
            base_delay=settings.relation_lookup_base_delay_seconds,
        )
        self.icon_mirror = icon_mirror
        self.icon_buckets = dict(icon_buckets) if icon_buckets is not None else default_icon_buckets()
        self.page_size = page_size or settings.sync_page_size
        self.max_pages = max_pages or settings.sync_max_pages

    async def sync_all(
        self,
        owner_id: str,
        database_ids: Mapping[EntityKind, str],
        kinds: list[EntityKind] | None = None,
    ) -> dict[str, EntitySyncResult]:
        """Run the requested kinds (default: all linked kinds) in dependency order."""
        wanted = set(kinds) if kinds is not None else set(database_ids)
        results: dict[str, EntitySyncResult] = {}
        for kind in SYNC_ORDER:
            if kind not in wanted:
                continue
            database_id = database_ids.get(kind)
            if not database_id:
                results[kind.value] = EntitySyncResult.failed(f"No {kind.value} database linked")
                continue
            results[kind.value] = await self.sync_entity(owner_id, kind, database_id)
        return results

    async def sync_entity(self, owner_id: str, kind: EntityKind, database_id: str) -> EntitySyncResult:
        stage = SyncStage.IDLE
        try:
            # 1. Schema is re-read on every run; it is the decoding key for this run only
            stage = SyncStage.FETCH_SCHEMA
            log.info("Sync %s for %s: %s", kind.value, owner_id, stage.value)
            schema = await fetch_schema(self.source, database_id)

            # 2. Full record set plus what we already have, for the diff
            stage = SyncStage.FETCH_RECORDS
            log.info("Sync %s for %s: %s", kind.value, owner_id, stage.value)
            records = await fetch_all_records(
                self.source, database_id, page_size=self.page_size, max_pages=self.max_pages
            )
            stored_ids = await self.store.list_external_ids(kind, owner_id, database_id)
            diff = diff_records(records, stored_ids)

            # 3. Decode properties and resolve relations, one record at a time
            stage = SyncStage.DECODE_AND_RESOLVE
            log.info("Sync %s for %s: %s (%d records)", kind.value, owner_id, stage.value, len(records))
            mapped = [await self._decode_and_resolve(kind, owner_id, schema, rec) for rec in records]

            # 4. Upsert the full current set
            stage = SyncStage.UPSERT
            log.info("Sync %s for %s: %s", kind.value, owner_id, stage.value)
            rows = [{**m.row, "external_id": m.external_id} for m in mapped]
            refs = await self.store.upsert_rows(kind, owner_id, database_id, rows)

            # 5. Icons (soft)
            stage = SyncStage.MIRROR_ICONS
            if kind in self.icon_buckets and self.icon_mirror is not None:
                log.info("Sync %s for %s: %s", kind.value, owner_id, stage.value)
                await self._mirror_icons(kind, owner_id, mapped, refs)

            # 6. Deletions (soft)
            stage = SyncStage.DELETE_REMOVED
            if diff.removed:
                log.info("Sync %s for %s: %s (%d)", kind.value, owner_id, stage.value, len(diff.removed))
                try:
                    await self.store.delete_external_ids(kind, owner_id, database_id, diff.removed)
                except DeleteError as exc:
                    log.warning("Sync %s for %s: could not delete removed rows: %s", kind.value, owner_id, exc)

            stage = SyncStage.DONE
            result = EntitySyncResult(
                success=True,
                added=len(diff.added),
                removed=len(diff.removed),
                total=len(records),
            )
            log.info(
                "Sync %s for %s done: added=%d removed=%d total=%d",
                kind.value, owner_id, result.added, result.removed, result.total,
            )
            return result
        except Exception as exc:
            log.exception("Sync %s for %s failed during %s", kind.value, owner_id, stage.value)
            # The next kind shares this session; it must not inherit an aborted transaction.
            await self.store.db.rollback()
            return EntitySyncResult.failed(str(exc) or exc.__class__.__name__)

    async def _decode_and_resolve(
        self,
        kind: EntityKind,
        owner_id: str,
        schema: PropertySchema,
        record: ExternalRecord,
    ) -> MappedRecord:
        mapped = map_record(kind, schema, record)
        row = mapped.row

        # Only the first referenced id is resolved; the rest stay in properties_json.
        for rel in mapped.relations:
            row[rel.column] = await self.resolver.resolve_first(rel.target, owner_id, rel.value)

        if kind is EntityKind.INVESTMENT and row.get("current_price") is None and row.get("asset_id"):
            price = await self.store.get_asset_current_price(owner_id, row["asset_id"])
            if price is not None:
                row["current_price"] = price

        return mapped

    async def _mirror_icons(
        self,
        kind: EntityKind,
        owner_id: str,
        mapped: list[MappedRecord],
        refs: list[StoredRef],
    ) -> None:
        bucket = self.icon_buckets[kind]
        icon_urls = {
            normalize_external_id(m.external_id): icon_source_url(m.row.get("icon_json"))
            for m in mapped
        }
        for ref in refs:
            url = icon_urls.get(normalize_external_id(ref.external_id))
            if not url:
                continue
            try:
                durable = await self.icon_mirror.mirror(
                    url,
                    bucket=bucket,
                    owner_id=owner_id,
                    record_id=str(ref.id),
                    updated_at=ref.updated_at,
                )
                if durable is None:
                    log.warning("No icon for %s %s this run; keeping previous icon", kind.value, ref.id)
                    continue
                await self.store.set_icon_url(kind, ref.id, durable)
            except Exception as exc:
                log.warning("Icon update for %s %s failed: %s", kind.value, ref.id, exc)
