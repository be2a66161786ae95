"""Connect finance databases and report connection status."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.finance import EntityKind
from ..notion.client import NotionAPIError, NotionClient, get_notion_client
from ..schemas.sync import ConnectionStatus, ConnectRequest
from ..security.session import current_owner_id
from ..services import connection_svc

router = APIRouter(prefix="/api/finances", tags=["connections"])


@router.post("/connect")
async def connect(
    data: ConnectRequest,
    owner_id: str = Depends(current_owner_id),
    db: AsyncSession = Depends(get_db),
    notion: NotionClient = Depends(get_notion_client),
):
    ids = {
        EntityKind.ASSET: (data.assets_database_id or "").strip(),
        EntityKind.INVESTMENT: (data.investments_database_id or "").strip(),
        EntityKind.PLACE: (data.places_database_id or "").strip(),
    }
    if not all(ids.values()):
        return JSONResponse({"error": "All three database IDs are required"}, status_code=400)

    try:
        links = await connection_svc.connect_databases(db, notion, owner_id, ids)
    except NotionAPIError as exc:
        status = 404 if exc.status_code in (400, 404) else 502
        return JSONResponse({"error": f"Could not access database: {exc}"}, status_code=status)

    return {
        "success": True,
        "databases": {
            connection_svc.STATUS_KEYS[EntityKind(link.kind)]: {
                "id": link.database_id,
                "name": link.database_name,
            }
            for link in links
        },
    }


@router.get("/connection", response_model=ConnectionStatus)
async def connection(
    owner_id: str = Depends(current_owner_id),
    db: AsyncSession = Depends(get_db),
):
    return await connection_svc.connection_status(db, owner_id)
