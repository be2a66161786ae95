"""Sync trigger endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..assets.blobstore import LocalObjectStore
from ..assets.icon_mirror import IconMirror
from ..config import settings
from ..database import get_db
from ..models.finance import EntityKind
from ..notion.client import NotionClient, get_notion_client
from ..schemas.sync import SyncResponse, SyncTriggerRequest
from ..security.session import session_owner_id
from ..security.webhooks import has_valid_sync_secret
from ..services import connection_svc
from ..sync.store import FinanceStore
from ..sync.sync_engine import SyncEngine

log = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


async def get_icon_mirror():
    mirror = IconMirror(
        LocalObjectStore(settings.storage_dir, settings.object_store_public_url),
        user_agent=settings.icon_user_agent,
        timeout_seconds=settings.icon_download_timeout_seconds,
    )
    try:
        yield mirror
    finally:
        await mirror.aclose()


async def get_sync_engine(
    db: AsyncSession = Depends(get_db),
    notion: NotionClient = Depends(get_notion_client),
    icon_mirror: IconMirror = Depends(get_icon_mirror),
) -> SyncEngine:
    return SyncEngine(notion, FinanceStore(db), icon_mirror=icon_mirror)


async def _read_trigger_body(request: Request) -> SyncTriggerRequest:
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    try:
        return SyncTriggerRequest.model_validate(body)
    except ValidationError as exc:
        log.warning("Ignoring malformed sync trigger body: %s", exc.errors(include_url=False))
        return SyncTriggerRequest()


@router.post("/api/finances/sync")
async def trigger_sync(
    request: Request,
    db: AsyncSession = Depends(get_db),
    engine: SyncEngine = Depends(get_sync_engine),
):
    owner_id: str | None = None
    kinds: list[EntityKind] | None = None

    # 1. Shared-secret callers name the owner (and optionally one kind) explicitly
    if has_valid_sync_secret(request):
        trigger = await _read_trigger_body(request)
        owner_id = (trigger.user_id or "").strip() or None
        kind = EntityKind.parse(trigger.db_type)
        if kind is not None:
            kinds = [kind]

    # 2. Otherwise an interactive session syncs everything
    if not owner_id:
        owner_id = session_owner_id(request)
        kinds = None
    if not owner_id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        database_ids = await connection_svc.require_database_ids(db, owner_id, kinds)
    except connection_svc.DatabaseNotLinkedError as exc:
        return JSONResponse({"error": f"{exc}. Please connect them first."}, status_code=400)

    log.info("Sync requested for %s (%s)", owner_id, ", ".join(k.value for k in database_ids))
    results = await engine.sync_all(owner_id, database_ids, kinds=list(database_ids))

    succeeded = [k for k in database_ids if results[k.value].success]
    await connection_svc.mark_synced(db, owner_id, succeeded)

    response = SyncResponse(success=True, results=results)
    return response.model_dump(exclude_none=True)
