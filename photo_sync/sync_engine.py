"""Sync engine – walks Drive, filters out migrated photos, uploads to R2 and indexes them per job."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)

from photo_sync.committer import MetadataCommitter
from photo_sync.dedup import ExistenceOracle
from photo_sync.errors import CommitError, ExistenceCheckError, TransferError
from photo_sync.models import (
    JobBatch,
    PhotoCandidate,
    PhotoMetadata,
    PhotoRecord,
    SyncResult,
)
from photo_sync.transfer import TransferPool
from photo_sync.walker import ListingProvider, TreeWalker

logger = logging.getLogger(__name__)


class DriveSource(ListingProvider, Protocol):
    def download_file(self, file_id: str, dest_path: Path) -> Path: ...


class SyncEngine:
    """Runs one migration pass: walk, check, download, enrich, upload, commit.

    Jobs are independent: a failed commit for one job is reported on that
    job and the remaining jobs still run.
    """

    def __init__(
        self,
        source: DriveSource,
        oracle: ExistenceOracle,
        extractor: Callable[[Path], PhotoMetadata],
        pool: TransferPool,
        committer: MetadataCommitter,
        scratch_dir: str | Path,
        backfill_orphans: bool = False,
        console: Console | None = None,
        walker: TreeWalker | None = None,
    ):
        self._source = source
        self._oracle = oracle
        self._extract = extractor
        self._pool = pool
        self._committer = committer
        self._scratch_dir = Path(scratch_dir)
        self._backfill_orphans = backfill_orphans
        self._console = console
        self._walker = walker or TreeWalker(source)

    # ── public API ───────────────────────────────────────────────────

    def run(self, root_folder_id: str) -> SyncResult:
        """Execute a full sync cycle and return the result."""
        result = SyncResult(dry_run=self._pool.dry_run)
        self._scratch_dir.mkdir(parents=True, exist_ok=True)

        try:
            logger.info("Walking Drive folder: %s", root_folder_id)
            candidates = self._scan(root_folder_id)
            result.found = len(candidates)
            result.listing_failures = len(self._walker.failed_folders)
            logger.info("Total photos found: %d", len(candidates))

            batch = self._collect(candidates, result)
            for job, records in batch:
                self._process_job(job, records, result)
        finally:
            if self._scratch_dir.exists():
                shutil.rmtree(self._scratch_dir, ignore_errors=True)

        return result

    # ── walk ─────────────────────────────────────────────────────────

    def _scan(self, root_folder_id: str) -> list[PhotoCandidate]:
        if not self._console:
            return self._walker.walk(root_folder_id)
        with self._console.status("[bold blue]Scanning Drive folders…"):
            return self._walker.walk(root_folder_id)

    # ── filter, download and enrich ──────────────────────────────────

    def _collect(self, candidates: list[PhotoCandidate], result: SyncResult) -> JobBatch:
        batch = JobBatch()
        claimed: set[str] = set()
        progress = self._progress()

        if progress is None:
            for candidate in candidates:
                self._admit(candidate, claimed, batch, result)
            return batch

        with progress:
            task = progress.add_task("Checking photos", total=len(candidates))
            for candidate in candidates:
                self._admit(candidate, claimed, batch, result)
                progress.advance(task)
        return batch

    def _admit(
        self,
        candidate: PhotoCandidate,
        claimed: set[str],
        batch: JobBatch,
        result: SyncResult,
    ) -> None:
        if not candidate.filename or not candidate.filename.strip():
            logger.warning("Skipping file with missing name: %s", candidate.remote_id)
            result.ineligible += 1
            return
        if not candidate.is_eligible:
            logger.debug("Not under customer/project/job/category: %s", candidate.display_path)
            result.ineligible += 1
            return
        if candidate.filename in claimed:
            logger.warning(
                "Duplicate filename in this run, skipping: %s", candidate.display_path
            )
            result.duplicates += 1
            return
        claimed.add(candidate.filename)

        report = result.job(candidate.job_key)
        report.attempted += 1

        try:
            check = self._oracle.check(candidate.filename)
        except ExistenceCheckError as exc:
            logger.error("Cannot tell if %s was migrated, leaving it alone: %s", candidate.filename, exc)
            report.failed += 1
            result.check_failures += 1
            return

        if check.orphaned:
            report.orphaned += 1
            logger.warning("Stored in bucket but not indexed: %s", candidate.filename)
        if check.exists and not (check.orphaned and self._backfill_orphans):
            logger.info("SKIP (already exists): %s", candidate.filename)
            report.skipped += 1
            return

        record = self._download(candidate)
        if record is None:
            report.failed += 1
            return
        record.already_stored = check.orphaned
        batch.add(record)

    def _scratch_path(self, candidate: PhotoCandidate) -> Path:
        """Local copy of *candidate*, always directly inside the scratch dir.

        Drive names may contain path separators, so they are flattened.
        """
        name = f"{candidate.remote_id}_{candidate.filename}"
        for sep in ("/", "\\"):
            name = name.replace(sep, "_")
        dest = (self._scratch_dir / name).resolve()
        if dest.parent != self._scratch_dir.resolve():
            raise TransferError(f"unsafe local name for {candidate.display_path}")
        return dest

    def _download(self, candidate: PhotoCandidate) -> PhotoRecord | None:
        logger.info("Downloading: %s", candidate.display_path)
        try:
            dest = self._scratch_path(candidate)
            local_path = self._source.download_file(candidate.remote_id, dest)
        except Exception as exc:
            logger.error("Failed to download %s: %s", candidate.display_path, exc)
            logger.debug("Traceback for %s", candidate.display_path, exc_info=True)
            return None

        metadata = self._extract(local_path)
        if not metadata.has_location:
            logger.debug("No GPS position in %s", candidate.filename)
        return PhotoRecord(candidate=candidate, metadata=metadata, scratch_path=local_path)

    # ── transfer and commit ──────────────────────────────────────────

    def _process_job(self, job: str, records: list[PhotoRecord], result: SyncResult) -> None:
        report = result.job(job)
        logger.info("Uploading and indexing %d photo(s) for job: %s", len(records), job)
        try:
            uploaded = self._transfer(job, records)
            report.transferred = sum(1 for r in uploaded if not r.already_stored)
            report.failed += len(records) - len(uploaded)

            try:
                report.committed = self._committer.commit(job, uploaded)
            except CommitError as exc:
                report.commit_failed = True
                report.commit_error = str(exc)
                logger.error(
                    "Index batch rolled back for job %s; %d stored photo(s) are not indexed: %s",
                    job, len(uploaded), exc,
                )
        finally:
            for record in records:
                if record.scratch_path is not None:
                    record.scratch_path.unlink(missing_ok=True)

    def _transfer(self, job: str, records: list[PhotoRecord]) -> list[PhotoRecord]:
        progress = self._progress()
        if progress is None:
            return self._pool.transfer(records)
        with progress:
            task = progress.add_task(f"Uploading {job}", total=len(records))
            return self._pool.transfer(records, on_done=lambda _record: progress.advance(task))

    def _progress(self) -> Progress | None:
        if not self._console:
            return None
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=self._console,
        )
