"""Read models for the finance dashboard."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.finance import FinanceAsset, FinanceInvestment, FinancePlace


def effective_price(investment: FinanceInvestment) -> float | None:
    if investment.current_price is not None:
        return investment.current_price
    if investment.asset is not None:
        return investment.asset.current_price
    return None


def investment_worth(investment: FinanceInvestment) -> float:
    """`current_value` when known, else price x quantity, else 0."""
    if investment.current_value is not None:
        return float(investment.current_value)
    price = effective_price(investment)
    if price is not None and investment.quantity is not None:
        return float(price) * float(investment.quantity)
    return 0.0


def _investment_payload(inv: FinanceInvestment) -> dict[str, Any]:
    return {
        "id": str(inv.id),
        "name": inv.name,
        "external_id": inv.external_id,
        "asset_id": str(inv.asset_id) if inv.asset_id else None,
        "place_id": str(inv.place_id) if inv.place_id else None,
        "quantity": inv.quantity,
        "purchase_price": inv.purchase_price,
        "purchase_date": inv.purchase_date.isoformat() if inv.purchase_date else None,
        "current_price": effective_price(inv),
        "current_value": inv.current_value,
        "currency": inv.currency,
        "current_worth": investment_worth(inv),
        "properties": inv.properties_json or {},
    }


async def list_assets(db: AsyncSession, owner_id: str) -> list[dict[str, Any]]:
    """Assets with their investments, richest first."""
    stmt = (
        select(FinanceAsset)
        .where(FinanceAsset.owner_id == owner_id)
        .options(selectinload(FinanceAsset.investments).selectinload(FinanceInvestment.asset))
    )
    assets = list((await db.execute(stmt)).scalars().all())

    items = []
    for asset in assets:
        investments = [_investment_payload(inv) for inv in asset.investments]
        items.append({
            "id": str(asset.id),
            "name": asset.name,
            "symbol": asset.symbol,
            "current_price": asset.current_price,
            "summary": asset.summary,
            "icon": asset.icon_json,
            "icon_url": asset.icon_url,
            "investments": investments,
            "total_worth": sum(inv["current_worth"] for inv in investments),
            "properties": asset.properties_json or {},
        })

    items.sort(key=lambda a: (-a["total_worth"], (a["name"] or "").lower()))
    return items


async def list_places(db: AsyncSession, owner_id: str) -> list[dict[str, Any]]:
    stmt = (
        select(FinancePlace)
        .where(FinancePlace.owner_id == owner_id)
        .options(selectinload(FinancePlace.investments).selectinload(FinanceInvestment.asset))
        .order_by(FinancePlace.name)
    )
    places = list((await db.execute(stmt)).scalars().all())

    items = []
    for place in places:
        total = sum(investment_worth(inv) for inv in place.investments)
        if total <= 0:
            total = place.total_value
        items.append({
            "id": str(place.id),
            "name": place.name,
            "place_type": place.place_type,
            "balance": place.balance,
            "total_value": total,
            "icon_url": place.icon_url,
            "investment_count": len(place.investments),
            "properties": place.properties_json or {},
        })
    return items


async def list_investments(db: AsyncSession, owner_id: str) -> list[dict[str, Any]]:
    """Investments, newest purchase first (undated last)."""
    stmt = (
        select(FinanceInvestment)
        .where(FinanceInvestment.owner_id == owner_id)
        .options(selectinload(FinanceInvestment.asset))
    )
    investments = list((await db.execute(stmt)).scalars().all())
    investments.sort(
        key=lambda inv: (inv.purchase_date is None, -(inv.purchase_date.timestamp()) if inv.purchase_date else 0)
    )
    return [_investment_payload(inv) for inv in investments]
