"""Async Notion REST client (databases and pages only)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings

log = logging.getLogger(__name__)


class NotionAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class NotionClient:
    """Thin wrapper over the Notion REST API.

    Usage:
        async with NotionClient(api_key) as notion:
            db = await notion.retrieve_database(database_id)
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        notion_version: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.notion_api_key
        self.base_url = (base_url or settings.notion_base_url).rstrip("/")
        self.notion_version = notion_version or settings.notion_version
        self.timeout_seconds = timeout_seconds or settings.notion_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NotionClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key or ''}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, endpoint: str, payload: dict | None = None) -> dict[str, Any]:
        if not self.api_key:
            raise NotionAPIError("Notion API key is not configured", code="missing_credentials")
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        resp = await self._client.request(method, endpoint, json=payload)
        if resp.status_code >= 400:
            code = None
            message = resp.text
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                code = body.get("code") if isinstance(body.get("code"), str) else None
                message = body.get("message") or message
            log.debug("Notion %s %s failed (%s %s)", method, endpoint, resp.status_code, code)
            raise NotionAPIError(
                f"Notion {method} {endpoint} failed ({resp.status_code}): {message}",
                status_code=resp.status_code,
                code=code,
            )
        return resp.json()

    async def retrieve_database(self, database_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/databases/{database_id}")

    async def query_database(
        self,
        database_id: str,
        *,
        start_cursor: str | None = None,
        page_size: int = 100,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            payload["start_cursor"] = start_cursor
        return await self._request("POST", f"/databases/{database_id}/query", payload)

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")


async def get_notion_client():
    """FastAPI dependency yielding an open client for the configured integration."""
    async with NotionClient() as client:
        yield client
