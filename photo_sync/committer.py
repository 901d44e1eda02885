"""Metadata committer – writes one job's transferred photos to the index."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from photo_sync.errors import CommitError
from photo_sync.models import PhotoRecord

logger = logging.getLogger(__name__)


class BatchIndex(Protocol):
    def insert_batch(self, job: str, rows: Sequence[dict]) -> int: ...


class MetadataCommitter:
    def __init__(self, index: BatchIndex, dry_run: bool = False):
        self._index = index
        self.dry_run = dry_run

    def commit(self, job: str, records: Sequence[PhotoRecord]) -> int:
        """Persist *records* atomically and return the number of rows written.

        Raises CommitError when the batch was rolled back; the photos are then
        in the bucket but not in the index.
        """
        if not records:
            return 0

        untransferred = [r.filename for r in records if not r.transferred]
        if untransferred:
            raise CommitError(job, f"records without storage key: {', '.join(untransferred)}")

        if self.dry_run:
            logger.info("[Dry Run] Would insert %d photo(s) for job: %s", len(records), job)
            return len(records)

        inserted = self._index.insert_batch(job, [record.to_row() for record in records])
        logger.info("Inserted %d photo(s) into the index for job: %s", inserted, job)
        return inserted
