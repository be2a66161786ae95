"""FinSync configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class FinSyncSettings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///finsync.db"
    echo_sql: bool = False
    app_title: str = "FinSync"

    # External property database (Notion)
    notion_api_key: str | None = None
    notion_base_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    notion_timeout_seconds: float = 30.0

    # Shared secrets. The webhook secret doubles as the internal sync secret
    # when no dedicated one is configured.
    sync_secret: str | None = None
    notion_webhook_secret: str | None = None
    sync_secret_header: str = "x-internal-sync"

    # Interactive sessions are issued by the external auth service; we only verify them.
    session_secret: str = ""
    session_cookie_name: str = "finsync_session"

    sync_page_size: int = 100
    # Ceiling for pathological cursor loops; real databases never get close.
    sync_max_pages: int = 10_000

    relation_lookup_retries: int = 3
    relation_lookup_base_delay_seconds: float = 0.1

    icon_download_timeout_seconds: float = 30.0
    icon_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    object_store_dir: str = "data/storage"
    object_store_public_url: str = "http://localhost:8030/storage"
    asset_icon_bucket: str = "finances-icons"
    place_icon_bucket: str = "finances-place-icons"

    model_config = {"env_prefix": "FINSYNC_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent

    @property
    def project_dir(self) -> Path:
        return self.base_dir.parent

    @property
    def storage_dir(self) -> Path:
        path = Path(self.object_store_dir)
        if not path.is_absolute():
            path = self.project_dir / path
        return path

    @property
    def effective_sync_secret(self) -> str | None:
        return self.sync_secret or self.notion_webhook_secret

    @property
    def notion_configured(self) -> bool:
        return bool(self.notion_api_key)


settings = FinSyncSettings()
