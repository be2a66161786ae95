"""Finance read endpoints for the dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..security.session import current_owner_id
from ..services import finance_svc

router = APIRouter(prefix="/api/finances", tags=["finances"])


@router.get("/assets")
async def list_assets(
    owner_id: str = Depends(current_owner_id),
    db: AsyncSession = Depends(get_db),
):
    return {"assets": await finance_svc.list_assets(db, owner_id)}


@router.get("/places")
async def list_places(
    owner_id: str = Depends(current_owner_id),
    db: AsyncSession = Depends(get_db),
):
    return {"places": await finance_svc.list_places(db, owner_id)}


@router.get("/investments")
async def list_investments(
    owner_id: str = Depends(current_owner_id),
    db: AsyncSession = Depends(get_db),
):
    return {"investments": await finance_svc.list_investments(db, owner_id)}
