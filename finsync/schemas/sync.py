"""Sync request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EntitySyncResult(BaseModel):
    success: bool
    added: int | None = None
    removed: int | None = None
    total: int | None = None
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> "EntitySyncResult":
        return cls(success=False, error=error)


class SyncResponse(BaseModel):
    success: bool = True
    results: dict[str, EntitySyncResult] = {}


class SyncTriggerRequest(BaseModel):
    """Body accepted on the shared-secret path (camelCase for webhook relays)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    db_type: str | None = Field(default=None, alias="dbType")


class ConnectRequest(BaseModel):
    assets_database_id: str | None = None
    investments_database_id: str | None = None
    places_database_id: str | None = None


class ConnectionStatus(BaseModel):
    connected: bool
    databases: dict[str, str | None]
