"""Icon downloader (plain GET with a browser-like identity)."""

from __future__ import annotations

from dataclasses import dataclass

import httpx


class DownloadError(Exception):
    pass


@dataclass(frozen=True)
class DownloadResult:
    data: bytes
    content_type: str | None = None


class IconDownloader:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        user_agent: str | None = None,
        timeout_seconds: float = 30.0,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_seconds),
        )
        self.user_agent = user_agent

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def download(self, url: str) -> DownloadResult:
        if not isinstance(url, str) or not url.strip():
            raise DownloadError("url required")

        headers = {"User-Agent": self.user_agent} if self.user_agent else None
        try:
            resp = await self.client.get(url.strip(), headers=headers)
        except httpx.HTTPError as e:
            raise DownloadError(f"download failed: {url}: {e}") from e

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DownloadError(f"download failed ({resp.status_code}): {url}") from e

        return DownloadResult(
            data=resp.content,
            content_type=resp.headers.get("content-type"),
        )
