"""Route Notion change notifications to deletes or single-kind syncs."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.finance import SYNC_ORDER, EntityKind
from ..sync.store import DeleteError, FinanceStore
from ..sync.sources import NotionSource
from ..sync.sync_engine import SyncEngine
from . import connection_svc

log = logging.getLogger(__name__)

DELETE_EVENT = "page.deleted"
SYNC_EVENTS = frozenset({"page.created", "page.properties_updated", "page.content_updated"})


def is_verification_payload(body: dict[str, Any]) -> bool:
    return body.get("verification_token") is not None and len(body) <= 2


async def resolve_database_id(source: NotionSource, body: dict[str, Any]) -> str | None:
    """Database id from the event parent, or by looking the page up."""
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    parent = data.get("parent") if isinstance(data.get("parent"), dict) else {}
    if parent.get("type") == "database" and isinstance(parent.get("id"), str):
        return parent["id"]

    entity = body.get("entity") if isinstance(body.get("entity"), dict) else {}
    if entity.get("type") != "page" or body.get("type") not in SYNC_EVENTS:
        return None

    try:
        page = await source.retrieve_page(entity["id"])
    except Exception as exc:
        log.info("Webhook: page %s not retrievable: %s", entity.get("id"), exc)
        return None
    page_parent = page.get("parent") if isinstance(page, dict) else None
    if isinstance(page_parent, dict) and isinstance(page_parent.get("database_id"), str):
        return page_parent["database_id"]
    return None


async def _delete_page(store: FinanceStore, kind: EntityKind, page_id: str, owner_id: str | None) -> int:
    try:
        return await store.delete_by_external_id(kind, page_id, owner_id=owner_id)
    except DeleteError as exc:
        log.warning("Webhook: %s", exc)
        return 0


async def dispatch_event(
    db: AsyncSession,
    source: NotionSource,
    engine: SyncEngine,
    body: dict[str, Any],
) -> dict[str, Any]:
    """Apply one change notification. Returns a small summary for logging/tests."""
    event_type = body.get("type")
    entity = body.get("entity") if isinstance(body.get("entity"), dict) else {}
    page_id = entity.get("id")
    if not isinstance(event_type, str) or not isinstance(page_id, str) or not page_id:
        return {"handled": False}

    is_delete = event_type == DELETE_EVENT
    if not is_delete and event_type not in SYNC_EVENTS:
        return {"handled": False}

    store = FinanceStore(db)
    database_id = await resolve_database_id(source, body)

    if database_id is None:
        if not is_delete:
            return {"handled": False}
        deleted = 0
        for kind in SYNC_ORDER:
            deleted += await _delete_page(store, kind, page_id, None)
        return {"handled": True, "deleted": deleted}

    links = await connection_svc.find_links_for_database(db, database_id)
    if not links:
        return {"handled": False}

    summary: dict[str, Any] = {"handled": True, "deleted": 0, "synced": []}
    for link in links:
        kind = EntityKind.parse(link.kind)
        if kind is None:
            continue
        if is_delete:
            summary["deleted"] += await _delete_page(store, kind, page_id, link.owner_id)
            continue

        result = await engine.sync_entity(link.owner_id, kind, link.database_id)
        if result.success:
            await connection_svc.mark_synced(db, link.owner_id, [kind])
        summary["synced"].append({"owner_id": link.owner_id, "kind": kind.value, "success": result.success})

    return summary
