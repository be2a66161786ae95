"""Async test fixtures for FinSync tests using SQLite."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from finsync.config import settings
from finsync.database import get_db
from finsync.models.base import Base
from finsync.models.link import NotionDatabaseLink
from finsync.notion.client import get_notion_client
from finsync.security.session import issue_session_token
from finsync.tests.fakes import (
    ASSET_SCHEMA,
    ASSETS_DB,
    INVESTMENT_SCHEMA,
    INVESTMENTS_DB,
    OWNER,
    PLACE_SCHEMA,
    PLACES_DB,
    FakeNotion,
    RecordingIconMirror,
)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _fast_settings(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setattr(settings, "relation_lookup_base_delay_seconds", 0.0)
    monkeypatch.setattr(settings, "session_secret", "test-session-secret")
    monkeypatch.setattr(settings, "sync_secret", None)
    monkeypatch.setattr(settings, "notion_webhook_secret", None)
    monkeypatch.setattr(settings, "object_store_dir", str(tmp_path / "storage"))


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def notion() -> FakeNotion:
    fake = FakeNotion()
    fake.add_database(ASSETS_DB, ASSET_SCHEMA, name="Assets")
    fake.add_database(PLACES_DB, PLACE_SCHEMA, name="Net Worth")
    fake.add_database(INVESTMENTS_DB, INVESTMENT_SCHEMA, name="Investments")
    return fake


@pytest.fixture
def icon_mirror() -> RecordingIconMirror:
    return RecordingIconMirror()


@pytest_asyncio.fixture
async def linked(db: AsyncSession):
    """All three finance databases linked for OWNER."""
    for kind, database_id in (("asset", ASSETS_DB), ("place", PLACES_DB), ("investment", INVESTMENTS_DB)):
        db.add(NotionDatabaseLink(owner_id=OWNER, kind=kind, database_id=database_id.replace("-", "")))
    await db.commit()


@pytest.fixture
def session_cookie() -> dict[str, str]:
    return {settings.session_cookie_name: issue_session_token(OWNER)}


@pytest_asyncio.fixture
async def client(engine, notion: FakeNotion, icon_mirror: RecordingIconMirror):
    """HTTPX async test client against the FinSync app."""
    from finsync.app import app
    from finsync.routers.sync import get_icon_mirror

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_notion_client():
        yield notion

    async def override_get_icon_mirror():
        yield icon_mirror

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notion_client] = override_get_notion_client
    app.dependency_overrides[get_icon_mirror] = override_get_icon_mirror

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
