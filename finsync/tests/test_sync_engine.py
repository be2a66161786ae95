"""Test the sync orchestrator end to end against fake Notion data."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.finance import EntityKind, FinanceAsset, FinanceInvestment, FinancePlace
from finsync.sync.relation_resolver import RelationResolver
from finsync.sync.store import FinanceStore
from finsync.sync.sync_engine import SyncEngine
from finsync.tests.fakes import (
    ASSET_SCHEMA,
    ASSETS_DB,
    INVESTMENTS_DB,
    PLACES_DB,
    FakeNotion,
    RecordingIconMirror,
    external_icon,
    multi_select,
    no_sleep,
    number,
    relation,
    rich_text,
    title,
)

DATABASES = {
    EntityKind.ASSET: ASSETS_DB,
    EntityKind.PLACE: PLACES_DB,
    EntityKind.INVESTMENT: INVESTMENTS_DB,
}


def _engine(notion, store: FinanceStore, icon_mirror=None) -> SyncEngine:
    resolver = RelationResolver(store, retries=3, base_delay=0.1, sleep=no_sleep)
    return SyncEngine(notion, store, resolver=resolver, icon_mirror=icon_mirror)


def _snapshot(obj) -> dict:
    skip = {"updated_at", "last_synced_at"}
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns if c.key not in skip}


async def _all(db: AsyncSession, model) -> list:
    return list((await db.execute(select(model).order_by(model.name))).scalars().all())


@pytest.mark.asyncio
async def test_acme_lifecycle(db: AsyncSession):
    notion = FakeNotion()
    notion.add_database("asset-db", ASSET_SCHEMA)
    notion.add_page("asset-db", "abc-123-def", {"Name": title("Acme Corp"), "Ticker": rich_text("ACME")})
    engine = _engine(notion, FinanceStore(db))

    first = await engine.sync_entity("U1", EntityKind.ASSET, "asset-db")
    assert first.model_dump(exclude_none=True) == {"success": True, "added": 1, "removed": 0, "total": 1}
    rows = await _all(db, FinanceAsset)
    assert [(r.name, r.symbol, r.external_id) for r in rows] == [("Acme Corp", "ACME", "abc123def")]

    second = await engine.sync_entity("U1", EntityKind.ASSET, "asset-db")
    assert (second.added, second.removed, second.total) == (0, 0, 1)

    notion.remove_page("asset-db", "abc-123-def")
    third = await engine.sync_entity("U1", EntityKind.ASSET, "asset-db")
    assert third.success and third.removed == 1
    assert await _all(db, FinanceAsset) == []


@pytest.mark.asyncio
async def test_second_run_is_idempotent(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "a-1", {"Name": title("Acme"), "Ticker": rich_text("ACME"), "Current Price": number(5)})
    notion.add_page(PLACES_DB, "p-1", {"Name": title("Broker"), "Tags": multi_select("Brokerage")})
    notion.add_page(INVESTMENTS_DB, "i-1", {
        "Name": title("Lot 1"), "Asset": relation("a-1"), "Facet in NW": relation("p-1"), "Units": number(2),
    })
    engine = _engine(notion, FinanceStore(db))

    await engine.sync_all("U1", DATABASES)
    before = [_snapshot(o) for model in (FinanceAsset, FinancePlace, FinanceInvestment) for o in await _all(db, model)]

    results = await engine.sync_all("U1", DATABASES)
    after = [_snapshot(o) for model in (FinanceAsset, FinancePlace, FinanceInvestment) for o in await _all(db, model)]

    assert all(r.success and r.added == 0 and r.removed == 0 for r in results.values())
    assert before == after


@pytest.mark.asyncio
async def test_investment_resolves_assets_created_in_same_run(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "aaaa-0001", {"Name": title("Acme"), "Current Price": number(12.5)})
    notion.add_page(PLACES_DB, "bbbb-0001", {"Name": title("Broker")})
    notion.add_page(INVESTMENTS_DB, "cccc-0001", {
        "Name": title("Lot"),
        "Asset": relation("aaaa-0001"),
        "Facet in NW": relation("bbbb-0001"),
        "Units": number(4),
    })
    engine = _engine(notion, FinanceStore(db))

    results = await engine.sync_all("U1", DATABASES)

    assert list(results) == ["asset", "place", "investment"]
    asset = (await _all(db, FinanceAsset))[0]
    place = (await _all(db, FinancePlace))[0]
    inv = (await _all(db, FinanceInvestment))[0]
    assert inv.asset_id == asset.id
    assert inv.place_id == place.id
    # No price on the investment itself, so it inherits the asset's.
    assert inv.current_price == 12.5


class _LaggyStore(FinanceStore):
    """Relation lookups miss a few times before the row becomes visible."""

    def __init__(self, db: AsyncSession, misses: int):
        super().__init__(db)
        self.misses = misses
        self.lookups = 0

    async def find_id_by_external_id(self, kind, owner_id, external_id):
        self.lookups += 1
        if self.lookups <= self.misses:
            return None
        return await super().find_id_by_external_id(kind, owner_id, external_id)


@pytest.mark.asyncio
async def test_relation_retry_absorbs_replication_lag(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "aaaa-0002", {"Name": title("Acme")})
    notion.add_page(INVESTMENTS_DB, "cccc-0002", {"Name": title("Lot"), "Asset": relation("aaaa-0002")})
    store = _LaggyStore(db, misses=2)
    engine = _engine(notion, store)

    results = await engine.sync_all(
        "U1", DATABASES, kinds=[EntityKind.ASSET, EntityKind.INVESTMENT]
    )

    assert results["investment"].success
    inv = (await _all(db, FinanceInvestment))[0]
    assert inv.asset_id == (await _all(db, FinanceAsset))[0].id
    assert store.lookups == 3


@pytest.mark.asyncio
async def test_dangling_relation_still_stores_investment(db: AsyncSession, notion: FakeNotion):
    notion.add_page(INVESTMENTS_DB, "cccc-0003", {"Name": title("Orphan"), "Asset": relation("nope-0000")})
    engine = _engine(notion, FinanceStore(db))

    result = await engine.sync_entity("U1", EntityKind.INVESTMENT, INVESTMENTS_DB)

    assert result.success and result.total == 1
    inv = (await _all(db, FinanceInvestment))[0]
    assert inv.asset_id is None
    assert inv.properties_json["Asset"] == ["nope-0000"]


@pytest.mark.asyncio
async def test_place_failure_does_not_block_siblings(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "aaaa-0004", {"Name": title("Acme")})
    notion.add_page(INVESTMENTS_DB, "cccc-0004", {"Name": title("Lot"), "Asset": relation("aaaa-0004")})
    notion.failing_databases.add(PLACES_DB.replace("-", ""))
    engine = _engine(notion, FinanceStore(db))

    results = await engine.sync_all("U1", DATABASES)

    assert results["asset"].success
    assert results["investment"].success
    assert results["place"].success is False
    assert "schema" in results["place"].error
    assert results["place"].model_dump(exclude_none=True).keys() == {"success", "error"}
    assert len(await _all(db, FinanceInvestment)) == 1


@pytest.mark.asyncio
async def test_legacy_dashed_rows_are_migrated_not_duplicated(db: AsyncSession, notion: FakeNotion):
    db.add(FinanceAsset(owner_id="U1", external_id="aaaa-0005", external_database_id=ASSETS_DB, name="Old"))
    await db.commit()
    notion.add_page(ASSETS_DB, "aaaa-0005", {"Name": title("New")})
    engine = _engine(notion, FinanceStore(db))

    result = await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    assert (result.added, result.removed, result.total) == (0, 0, 1)
    rows = await _all(db, FinanceAsset)
    assert [(r.name, r.external_id) for r in rows] == [("New", "aaaa0005")]


@pytest.mark.asyncio
async def test_owners_are_isolated(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "aaaa-0006", {"Name": title("Acme")})
    engine = _engine(notion, FinanceStore(db))

    await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)
    await engine.sync_entity("U2", EntityKind.ASSET, ASSETS_DB)
    notion.remove_page(ASSETS_DB, "aaaa-0006")
    await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    rows = await _all(db, FinanceAsset)
    assert [r.owner_id for r in rows] == ["U2"]


@pytest.mark.asyncio
async def test_icons_are_mirrored_and_kept_on_failure(db: AsyncSession, notion: FakeNotion):
    icon_url = "https://s3.test/acme.png"
    notion.add_page(ASSETS_DB, "aaaa-0007", {"Name": title("Acme")}, icon=external_icon(icon_url))
    notion.add_page(ASSETS_DB, "aaaa-0008", {"Name": title("Beta")}, icon={"type": "emoji", "emoji": "$"})
    mirror = RecordingIconMirror()
    engine = _engine(notion, FinanceStore(db), icon_mirror=mirror)

    await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    acme, beta = await _all(db, FinanceAsset)
    assert acme.icon_url == f"https://cdn.test/finances-icons/U1/{acme.id}.png?t=1"
    assert beta.icon_url is None
    assert [c["url"] for c in mirror.calls] == [icon_url]

    # Upstream link now fails: the previous durable URL must survive.
    mirror.failing_urls.add(icon_url)
    result = await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    assert result.success
    await db.refresh(acme)
    assert acme.icon_url == f"https://cdn.test/finances-icons/U1/{acme.id}.png?t=1"


@pytest.mark.asyncio
async def test_place_icons_use_place_bucket(db: AsyncSession, notion: FakeNotion):
    notion.add_page(PLACES_DB, "bbbb-0009", {"Name": title("Bank")}, icon=external_icon("https://s3.test/bank.png"))
    mirror = RecordingIconMirror()
    engine = _engine(notion, FinanceStore(db), icon_mirror=mirror)

    await engine.sync_entity("U1", EntityKind.PLACE, PLACES_DB)

    assert mirror.calls[0]["bucket"] == "finances-place-icons"
    assert (await _all(db, FinancePlace))[0].icon_url.startswith("https://cdn.test/finances-place-icons/")


@pytest.mark.asyncio
async def test_legacy_and_normalized_twins_collapse_to_one_row(db: AsyncSession, notion: FakeNotion):
    db.add(FinanceAsset(owner_id="U1", external_id="aaaa-0010", external_database_id=ASSETS_DB, name="Legacy"))
    db.add(FinanceAsset(owner_id="U1", external_id="aaaa0010", external_database_id=ASSETS_DB, name="Current"))
    await db.commit()
    kept_id = (await db.execute(
        select(FinanceAsset.id).where(FinanceAsset.external_id == "aaaa0010")
    )).scalar_one()
    notion.add_page(ASSETS_DB, "aaaa-0010", {"Name": title("Acme")})
    engine = _engine(notion, FinanceStore(db))

    first = await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)
    second = await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    assert first.success and second.success
    assert (second.added, second.removed, second.total) == (0, 0, 1)
    rows = await _all(db, FinanceAsset)
    assert [(r.id, r.name, r.external_id) for r in rows] == [(kept_id, "Acme", "aaaa0010")]


class _BrokenListingStore(FinanceStore):
    """Fails the stored-id listing for places after leaving work pending in the session."""

    async def list_external_ids(self, kind, owner_id, database_id):
        if kind is EntityKind.PLACE:
            self.db.add(FinancePlace(
                owner_id=owner_id, external_id="stray", external_database_id=database_id, name="Stray",
            ))
            raise RuntimeError("connection reset while listing places")
        return await super().list_external_ids(kind, owner_id, database_id)


@pytest.mark.asyncio
async def test_failed_entity_does_not_leak_session_state(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "aaaa-0011", {"Name": title("Acme")})
    notion.add_page(INVESTMENTS_DB, "cccc-0011", {"Name": title("Lot"), "Asset": relation("aaaa-0011")})
    engine = _engine(notion, _BrokenListingStore(db))

    results = await engine.sync_all("U1", DATABASES)

    assert results["place"].success is False
    assert "connection reset" in results["place"].error
    assert results["investment"].success
    assert (await _all(db, FinanceInvestment))[0].asset_id == (await _all(db, FinanceAsset))[0].id
    # Work pending when the place sync failed was rolled back, not committed by the investment sync.
    assert await _all(db, FinancePlace) == []


@pytest.mark.asyncio
async def test_missing_cursor_keeps_stored_rows(db: AsyncSession, notion: FakeNotion):
    notion.add_page(ASSETS_DB, "aaaa-0012", {"Name": title("One")})
    notion.add_page(ASSETS_DB, "aaaa-0013", {"Name": title("Two")})
    engine = _engine(notion, FinanceStore(db))
    await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    notion.page_size_override = 1
    notion.drop_next_cursor = True
    result = await engine.sync_entity("U1", EntityKind.ASSET, ASSETS_DB)

    assert result.success is False
    assert "without a cursor" in result.error
    assert [r.name for r in await _all(db, FinanceAsset)] == ["One", "Two"]
