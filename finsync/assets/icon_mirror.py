"""Copy externally hosted record icons into the durable object store.

Notion file icons are short-lived signed URLs, so they are re-downloaded and
republished under a stable key on every sync. Failures here never propagate:
the caller keeps whatever icon URL it already had.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from ..sync.sources import ObjectStore
from .blobstore import BlobstoreError
from .downloader import DownloadError, IconDownloader

log = logging.getLogger(__name__)

_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)$", re.IGNORECASE)
_CONTENT_TYPE_EXT = (
    ("jpeg", "jpg"),
    ("png", "png"),
    ("gif", "gif"),
    ("webp", "webp"),
    ("svg", "svg"),
)
DEFAULT_EXTENSION = "jpg"


class IconMirrorError(Exception):
    pass


def icon_source_url(icon: Any) -> str | None:
    """URL behind an icon descriptor; emoji icons have none."""
    if not isinstance(icon, dict):
        return None
    kind = icon.get("type")
    if kind not in ("external", "file"):
        return None
    inner = icon.get(kind)
    url = inner.get("url") if isinstance(inner, dict) else None
    return url if isinstance(url, str) and url.strip() else None


def is_non_image_content_type(content_type: str | None) -> bool:
    """Blob hosts answer expired/denied links with XML or text bodies, often with 200."""
    ct = (content_type or "").lower()
    return "xml" in ct or "text" in ct


def infer_extension(url: str, content_type: str | None) -> str:
    try:
        path = urlparse(url).path or ""
    except ValueError:
        path = ""
    m = _EXT_RE.search(path)
    if m:
        return m.group(1).lower()
    ct = (content_type or "").lower()
    for needle, ext in _CONTENT_TYPE_EXT:
        if needle in ct:
            return ext
    return DEFAULT_EXTENSION


def cache_buster(updated_at: datetime | None) -> int:
    """Milliseconds since the epoch of `updated_at` (naive means UTC), else now."""
    if updated_at is None:
        return int(time.time() * 1000)
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return int(updated_at.timestamp() * 1000)


class IconMirror:
    def __init__(
        self,
        object_store: ObjectStore,
        *,
        client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
        timeout_seconds: float = 30.0,
    ):
        self.object_store = object_store
        self.downloader = IconDownloader(
            client=client, user_agent=user_agent, timeout_seconds=timeout_seconds
        )

    async def aclose(self) -> None:
        await self.downloader.aclose()

    async def _mirror(
        self,
        url: str,
        *,
        bucket: str,
        owner_id: str,
        record_id: str,
        updated_at: datetime | None,
    ) -> str:
        downloaded = await self.downloader.download(url)
        if is_non_image_content_type(downloaded.content_type):
            raise IconMirrorError(
                f"icon URL returned {downloaded.content_type!r} instead of an image"
            )

        ext = infer_extension(url, downloaded.content_type)
        key = f"{owner_id}/{record_id}.{ext}"
        await self.object_store.upload(
            bucket, key, downloaded.data, downloaded.content_type or f"image/{ext}"
        )
        return f"{self.object_store.public_url(bucket, key)}?t={cache_buster(updated_at)}"

    async def mirror(
        self,
        url: str,
        *,
        bucket: str,
        owner_id: str,
        record_id: str,
        updated_at: datetime | None = None,
    ) -> str | None:
        """Return a durable, cache-busted URL for `url`, or None on any failure."""
        try:
            return await self._mirror(
                url, bucket=bucket, owner_id=owner_id, record_id=record_id, updated_at=updated_at
            )
        except (DownloadError, IconMirrorError, BlobstoreError) as exc:
            log.warning("Icon mirror failed for %s/%s: %s", bucket, record_id, exc)
            return None
