"""Finance database links (which Notion database backs which entity kind)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.finance import SYNC_ORDER, EntityKind
from ..models.link import NotionDatabaseLink
from ..sync.ids import normalize_external_id, same_external_id
from ..sync.schema_adapter import database_title, parse_schema
from ..sync.sources import NotionSource

DEFAULT_TITLES: dict[EntityKind, str] = {
    EntityKind.ASSET: "Assets",
    EntityKind.PLACE: "Net Worth",
    EntityKind.INVESTMENT: "Investments",
}

# Keys used by the connection status payload.
STATUS_KEYS: dict[EntityKind, str] = {
    EntityKind.ASSET: "assets",
    EntityKind.INVESTMENT: "investments",
    EntityKind.PLACE: "places",
}


class DatabaseNotLinkedError(Exception):
    def __init__(self, missing: list[EntityKind]):
        self.missing = missing
        names = ", ".join(kind.value for kind in missing)
        super().__init__(f"Finance databases not connected: {names}")


async def list_links(db: AsyncSession, owner_id: str) -> list[NotionDatabaseLink]:
    stmt = select(NotionDatabaseLink).where(NotionDatabaseLink.owner_id == owner_id)
    return list((await db.execute(stmt)).scalars().all())


async def get_database_ids(db: AsyncSession, owner_id: str) -> dict[EntityKind, str]:
    ids: dict[EntityKind, str] = {}
    for link in await list_links(db, owner_id):
        kind = EntityKind.parse(link.kind)
        if kind is not None and link.database_id:
            ids[kind] = link.database_id
    return ids


async def require_database_ids(
    db: AsyncSession, owner_id: str, kinds: list[EntityKind] | None = None
) -> dict[EntityKind, str]:
    """Linked database ids for `kinds` (default: all three), or DatabaseNotLinkedError."""
    wanted = kinds or list(SYNC_ORDER)
    ids = await get_database_ids(db, owner_id)
    missing = [kind for kind in wanted if kind not in ids]
    if missing:
        raise DatabaseNotLinkedError(missing)
    return {kind: ids[kind] for kind in wanted}


async def connection_status(db: AsyncSession, owner_id: str) -> dict:
    ids = await get_database_ids(db, owner_id)
    databases = {STATUS_KEYS[kind]: ids.get(kind) for kind in SYNC_ORDER}
    return {
        "connected": all(databases.values()),
        "databases": databases,
    }


async def connect_databases(
    db: AsyncSession,
    source: NotionSource,
    owner_id: str,
    database_ids: Mapping[EntityKind, str],
) -> list[NotionDatabaseLink]:
    """Replace the owner's finance links after confirming each database exists.

    Any NotionAPIError from the lookup propagates to the caller.
    """
    snapshots: dict[EntityKind, dict] = {}
    for kind in SYNC_ORDER:
        db_id = normalize_external_id(database_ids[kind])
        snapshots[kind] = await source.retrieve_database(db_id)

    await db.execute(delete(NotionDatabaseLink).where(NotionDatabaseLink.owner_id == owner_id))

    links: list[NotionDatabaseLink] = []
    for kind in SYNC_ORDER:
        payload = snapshots[kind]
        schema = parse_schema(payload)
        link = NotionDatabaseLink(
            owner_id=owner_id,
            kind=kind.value,
            database_id=normalize_external_id(database_ids[kind]),
            database_name=database_title(payload) or DEFAULT_TITLES[kind],
            properties_json={key: {"name": e.name, "type": e.type} for key, e in schema.items()},
        )
        db.add(link)
        links.append(link)

    await db.commit()
    return links


async def find_links_for_database(db: AsyncSession, database_id: str) -> list[NotionDatabaseLink]:
    """All owners' links pointing at `database_id` (either id form)."""
    stmt = select(NotionDatabaseLink).where(
        NotionDatabaseLink.database_id.in_({database_id, normalize_external_id(database_id)})
    )
    links = list((await db.execute(stmt)).scalars().all())
    return [link for link in links if same_external_id(link.database_id, database_id)]


async def mark_synced(db: AsyncSession, owner_id: str, kinds: list[EntityKind]) -> None:
    if not kinds:
        return
    now = datetime.now(timezone.utc)
    values = [kind.value for kind in kinds]
    for link in await list_links(db, owner_id):
        if link.kind in values:
            link.last_synced_at = now
    await db.commit()
