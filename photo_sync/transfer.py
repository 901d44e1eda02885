"""Transfer worker pool – uploads a job's photos with bounded concurrency."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Protocol

from photo_sync.models import PhotoRecord

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5

DRY_RUN_KEY = "dry-run-key"
DRY_RUN_URL = "https://example.com/dry-run.jpg"

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


class UploadTarget(Protocol):
    def put_file(self, key: str, local_path: Path, content_type: str) -> str: ...

    def public_url(self, key: str) -> str: ...


class TransferPool:
    """Uploads records on at most *concurrency* threads.

    A record comes back with ``storage_key``/``public_url`` set only if its
    upload finished; failures are logged and never affect sibling uploads.
    With *dry_run* the workers assign placeholder values instead of calling
    the store, everything else is identical.
    """

    def __init__(
        self,
        store: UploadTarget,
        concurrency: int = DEFAULT_CONCURRENCY,
        dry_run: bool = False,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self.concurrency = concurrency
        self.dry_run = dry_run

    def transfer(
        self,
        records: Sequence[PhotoRecord],
        on_done: Callable[[PhotoRecord], None] | None = None,
    ) -> list[PhotoRecord]:
        """Upload *records* and return the successful ones in input order."""
        if not records:
            return []

        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="upload"
        ) as executor:
            futures = {executor.submit(self._upload_one, record): record for record in records}
            for future in as_completed(futures):
                record = futures[future]
                try:
                    future.result()
                except Exception as exc:
                    logger.error("Failed to upload %s: %s", record.filename, exc)
                    logger.debug("Traceback for %s", record.filename, exc_info=True)
                if on_done:
                    try:
                        on_done(record)
                    except Exception:
                        logger.warning("Progress callback failed for %s", record.filename, exc_info=True)

        return [record for record in records if record.transferred]

    def _upload_one(self, record: PhotoRecord) -> None:
        if self.dry_run:
            logger.info("[Dry Run] Would upload: %s", record.filename)
            record.storage_key = DRY_RUN_KEY
            record.public_url = DRY_RUN_URL
            return

        if record.already_stored:
            logger.info("Already stored, indexing only: %s", record.filename)
            record.storage_key = record.filename
            record.public_url = self._store.public_url(record.filename)
            return

        if record.scratch_path is None:
            raise ValueError(f"{record.filename} has no local copy")
        url = self._store.put_file(
            record.filename, record.scratch_path, content_type_for(record.filename)
        )
        record.storage_key = record.filename
        record.public_url = url
        logger.info("Uploaded: %s", record.filename)
