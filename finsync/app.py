"""FastAPI application for the FinSync service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .config import settings

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); PostgreSQL uses Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    if not settings.notion_configured:
        log.warning("FINSYNC_NOTION_API_KEY is not set; syncs will fail until it is")
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)

settings.storage_dir.mkdir(parents=True, exist_ok=True)
app.mount("/storage", StaticFiles(directory=str(settings.storage_dir)), name="storage")

# Import and register routers
from .routers import connections, finances, health, sync, webhooks  # noqa: E402

app.include_router(sync.router)
app.include_router(connections.router)
app.include_router(finances.router)
app.include_router(webhooks.router)
app.include_router(health.router)
