"""Run configuration, read from the environment (and a .env file via python-dotenv)."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from photo_sync.errors import ConfigError
from photo_sync.transfer import DEFAULT_CONCURRENCY

DEFAULT_TEMP_DIR = str(Path(tempfile.gettempdir()) / "photo_sync_temp")

REQUIRED = {
    "root_folder_id": "ROOT_FOLDER_ID",
    "google_client_id": "GOOGLE_CLIENT_ID",
    "google_client_secret": "GOOGLE_CLIENT_SECRET",
    "google_refresh_token": "GOOGLE_REFRESH_TOKEN",
    "r2_endpoint": "R2_ENDPOINT",
    "r2_access_key_id": "R2_ACCESS_KEY_ID",
    "r2_secret_access_key": "R2_SECRET_ACCESS_KEY",
    "bucket": "R2_BUCKET_NAME",
    "database_url": "DATABASE_URL",
}


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SyncConfig:
    root_folder_id: str | None = None
    shared_drive_id: str | None = None
    google_client_id: str | None = None
    google_client_secret: str | None = field(default=None, repr=False)
    google_refresh_token: str | None = field(default=None, repr=False)
    r2_endpoint: str | None = None
    r2_access_key_id: str | None = None
    r2_secret_access_key: str | None = field(default=None, repr=False)
    bucket: str | None = None
    public_base_url: str | None = None
    database_url: str | None = field(default=None, repr=False)
    table_name: str = "migratedphotos"
    concurrency: int = DEFAULT_CONCURRENCY
    dry_run: bool = False
    temp_dir: str = DEFAULT_TEMP_DIR

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SyncConfig:
        env = os.environ if environ is None else environ
        raw_concurrency = env.get("SYNC_CONCURRENCY") or str(DEFAULT_CONCURRENCY)
        try:
            concurrency = int(raw_concurrency)
        except ValueError:
            raise ConfigError(f"SYNC_CONCURRENCY must be an integer, got {raw_concurrency!r}") from None

        values = {attr: env.get(var) or None for attr, var in REQUIRED.items()}
        return cls(
            shared_drive_id=env.get("SHARED_DRIVE_ID") or None,
            public_base_url=env.get("R2_PUBLIC_URL") or None,
            table_name=env.get("PHOTO_TABLE") or "migratedphotos",
            concurrency=concurrency,
            dry_run=_flag(env.get("DRY_RUN")),
            temp_dir=env.get("TEMP_DIR") or DEFAULT_TEMP_DIR,
            **values,
        )

    def validate(self) -> None:
        """Raise ConfigError naming every missing setting."""
        missing = [var for attr, var in REQUIRED.items() if not getattr(self, attr)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if self.concurrency < 1:
            raise ConfigError("SYNC_CONCURRENCY must be at least 1")
