"""Webhook route for Notion change notifications."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..notion.client import NotionClient, get_notion_client
from ..security.webhooks import verify_notion_signature
from ..services.webhook_dispatch import dispatch_event, is_verification_payload
from ..sync.sync_engine import SyncEngine
from .sync import get_sync_engine

log = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/notion")
async def notion_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    notion: NotionClient = Depends(get_notion_client),
    engine: SyncEngine = Depends(get_sync_engine),
):
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        return {"ok": True}
    if not isinstance(body, dict):
        return {"ok": True}

    # One-time subscription handshake; the token is configured out of band.
    if is_verification_payload(body):
        log.info("Notion webhook verification token received")
        return {"ok": True}

    verify_notion_signature(request, raw)

    try:
        summary = await dispatch_event(db, notion, engine, body)
    except Exception:
        log.exception("Notion webhook %s failed", body.get("type"))
        return {"ok": True}

    log.info("Notion webhook %s: %s", body.get("type"), summary)
    return {"ok": True, **summary}
