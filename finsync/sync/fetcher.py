"""Cursor-paginated retrieval of a complete external record set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..notion.client import NotionAPIError
from .sources import NotionSource

log = logging.getLogger(__name__)


class RecordFetchError(Exception):
    pass


@dataclass
class ExternalRecord:
    id: str
    properties: dict[str, Any] = field(default_factory=dict)
    icon: dict[str, Any] | None = None
    last_edited_time: str | None = None

    @classmethod
    def from_page(cls, page: dict[str, Any]) -> "ExternalRecord | None":
        page_id = page.get("id")
        if not isinstance(page_id, str) or not page_id:
            return None
        props = page.get("properties")
        icon = page.get("icon")
        edited = page.get("last_edited_time")
        return cls(
            id=page_id,
            properties=props if isinstance(props, dict) else {},
            icon=icon if isinstance(icon, dict) else None,
            last_edited_time=edited if isinstance(edited, str) else None,
        )


async def fetch_all_records(
    source: NotionSource,
    database_id: str,
    *,
    page_size: int = 100,
    max_pages: int = 10_000,
) -> list[ExternalRecord]:
    """Follow `next_cursor` until the source reports no more pages.

    Deletion detection relies on this set being complete, so hitting the page
    ceiling or seeing a cursor repeat is an error rather than a truncation.
    """
    records: list[ExternalRecord] = []
    seen_cursors: set[str] = set()
    cursor: str | None = None

    for _ in range(max_pages):
        try:
            resp = await source.query_database(database_id, start_cursor=cursor, page_size=page_size)
        except (NotionAPIError, httpx.HTTPError) as exc:
            raise RecordFetchError(f"Failed to query database {database_id}: {exc}") from exc

        for page in resp.get("results") or []:
            if not isinstance(page, dict):
                continue
            record = ExternalRecord.from_page(page)
            if record is not None:
                records.append(record)

        if not resp.get("has_more"):
            log.debug("Fetched %d records from %s", len(records), database_id)
            return records

        next_cursor = resp.get("next_cursor")
        if not isinstance(next_cursor, str) or not next_cursor:
            raise RecordFetchError(f"Database {database_id} reported more pages without a cursor")
        if next_cursor in seen_cursors:
            raise RecordFetchError(f"Cursor repeated while querying database {database_id}")
        seen_cursors.add(next_cursor)
        cursor = next_cursor

    raise RecordFetchError(f"Exceeded {max_pages} pages while querying database {database_id}")
