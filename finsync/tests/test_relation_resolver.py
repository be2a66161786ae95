"""Test bounded retry and relation resolution."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from finsync.models.finance import EntityKind, FinanceAsset
from finsync.sync.relation_resolver import RelationResolver
from finsync.sync.retry import exponential_backoff, with_retry
from finsync.sync.store import FinanceStore


class _Sleeps:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
async def test_with_retry_backs_off_until_value_appears():
    sleeps = _Sleeps()
    answers = iter([None, None, "found"])

    async def op():
        return next(answers)

    result = await with_retry(op, max_attempts=4, backoff=exponential_backoff(0.1), sleep=sleeps)

    assert result.value == "found"
    assert result.attempts == 3
    assert sleeps.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_with_retry_captures_errors_and_gives_up():
    sleeps = _Sleeps()

    async def op():
        raise RuntimeError("db hiccup")

    result = await with_retry(op, max_attempts=4, backoff=exponential_backoff(0.1), sleep=sleeps)

    assert not result.found
    assert result.attempts == 4
    assert isinstance(result.error, RuntimeError)
    assert sleeps.delays == pytest.approx([0.1, 0.2, 0.4])


async def _add_asset(db: AsyncSession, external_id: str) -> FinanceAsset:
    asset = FinanceAsset(owner_id="u1", external_id=external_id, external_database_id="db1", name="A")
    db.add(asset)
    await db.commit()
    return asset


@pytest.mark.asyncio
async def test_resolves_by_normalized_id(db: AsyncSession):
    asset = await _add_asset(db, "abc123")
    resolver = RelationResolver(FinanceStore(db), retries=3, base_delay=0, sleep=_Sleeps())

    assert await resolver.resolve(EntityKind.ASSET, "u1", "abc-123") == asset.id


@pytest.mark.asyncio
async def test_falls_back_to_dashed_legacy_id(db: AsyncSession):
    asset = await _add_asset(db, "abc-123")
    sleeps = _Sleeps()
    resolver = RelationResolver(FinanceStore(db), retries=3, base_delay=0.1, sleep=sleeps)

    assert await resolver.resolve(EntityKind.ASSET, "u1", "abc-123") == asset.id
    # The normalized lookup exhausted its retries first.
    assert sleeps.delays == pytest.approx([0.1, 0.2, 0.4])


@pytest.mark.asyncio
async def test_unresolved_relation_is_soft(db: AsyncSession):
    resolver = RelationResolver(FinanceStore(db), retries=1, base_delay=0, sleep=_Sleeps())
    assert await resolver.resolve(EntityKind.ASSET, "u1", "missing-id") is None
    assert await resolver.resolve(EntityKind.ASSET, "u1", None) is None


@pytest.mark.asyncio
async def test_lookup_absorbs_replication_lag(db: AsyncSession):
    """The referenced row shows up while the resolver is backing off."""
    store = FinanceStore(db)
    target_id = uuid.uuid4()

    async def lagging_sleep(delay: float) -> None:
        if not lagging_sleep.inserted:
            db.add(FinanceAsset(
                id=target_id, owner_id="u1", external_id="late1", external_database_id="db1", name="Late",
            ))
            await db.commit()
            lagging_sleep.inserted = True

    lagging_sleep.inserted = False
    resolver = RelationResolver(store, retries=3, base_delay=0.1, sleep=lagging_sleep)

    assert await resolver.resolve(EntityKind.ASSET, "u1", "late-1") == target_id


@pytest.mark.asyncio
async def test_resolve_first_ignores_extra_references(db: AsyncSession):
    first = await _add_asset(db, "first1")
    await _add_asset(db, "second2")
    resolver = RelationResolver(FinanceStore(db), retries=0, base_delay=0, sleep=_Sleeps())

    assert await resolver.resolve_first(EntityKind.ASSET, "u1", ["first-1", "second-2"]) == first.id
    assert await resolver.resolve_first(EntityKind.ASSET, "u1", []) is None
