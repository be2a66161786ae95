"""Interfaces the sync engine depends on, so each collaborator can be faked."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol


class NotionSource(Protocol):
    async def retrieve_database(self, database_id: str) -> dict[str, Any]: ...

    async def query_database(
        self,
        database_id: str,
        *,
        start_cursor: str | None = None,
        page_size: int = 100,
    ) -> dict[str, Any]: ...

    async def retrieve_page(self, page_id: str) -> dict[str, Any]: ...


class ObjectStore(Protocol):
    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None: ...

    def public_url(self, bucket: str, key: str) -> str: ...


class IconSink(Protocol):
    async def mirror(
        self,
        url: str,
        *,
        bucket: str,
        owner_id: str,
        record_id: str,
        updated_at: datetime | None = None,
    ) -> str | None: ...
