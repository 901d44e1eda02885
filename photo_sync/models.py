"""Data types passed between the stages of the sync pipeline."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

FOLDER = "folder"
FILE = "file"

# customer / project / job / category
HIERARCHY_DEPTH = 4


@dataclass(frozen=True)
class FolderNode:
    """One entry of a remote folder listing."""

    id: str
    name: str
    kind: str = FILE

    @property
    def is_folder(self) -> bool:
        return self.kind == FOLDER


@dataclass
class ListingPage:
    entries: list[FolderNode] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass(frozen=True)
class PhotoCandidate:
    """A photo found by the walk, not yet checked against the destination."""

    remote_id: str
    filename: str
    path_segments: tuple[str, ...] = ()

    @property
    def is_eligible(self) -> bool:
        return bool(self.filename and self.filename.strip()) and (
            len(self.path_segments) >= HIERARCHY_DEPTH
        )

    @property
    def customer(self) -> str:
        return self.path_segments[0]

    @property
    def project(self) -> str:
        return self.path_segments[1]

    @property
    def job(self) -> str:
        return self.path_segments[2]

    @property
    def category(self) -> str:
        return self.path_segments[3]

    @property
    def job_key(self) -> str:
        """Identity of the job folder, used to group batches."""
        return "/".join(self.path_segments[:3])

    @property
    def job_folder_key(self) -> str:
        return "-".join(self.path_segments[:3])

    @property
    def display_path(self) -> str:
        return "/".join((*self.path_segments, self.filename))


@dataclass(frozen=True)
class PhotoMetadata:
    """Best-effort EXIF values. ``None`` means the value was not found."""

    latitude: float | None = None
    longitude: float | None = None
    captured_at: datetime | None = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class PhotoRecord:
    """A new photo, enriched with metadata and tracked through transfer."""

    candidate: PhotoCandidate
    metadata: PhotoMetadata = field(default_factory=PhotoMetadata)
    scratch_path: Path | None = None
    storage_key: str | None = None
    public_url: str | None = None
    # Object already in the bucket without an index row; commit without upload.
    already_stored: bool = False

    @property
    def filename(self) -> str:
        return self.candidate.filename

    @property
    def transferred(self) -> bool:
        return bool(self.storage_key) and bool(self.public_url)

    def to_row(self) -> dict:
        """Return the index row for this record, keyed by column name."""
        c = self.candidate
        return {
            "google_file_id": c.remote_id,
            "customer": c.customer,
            "project": c.project,
            "job": c.job,
            "category": c.category,
            "filename": c.filename,
            "r2_key": self.storage_key,
            "cloudflare_link": self.public_url,
            "lat1": self.metadata.latitude,
            "lon1": self.metadata.longitude,
            "timestamp": self.metadata.captured_at,
            "googlejobfolderid": c.job_folder_key,
        }


class JobBatch:
    """Records grouped by job, in first-seen order."""

    def __init__(self) -> None:
        self._jobs: dict[str, list[PhotoRecord]] = {}

    def add(self, record: PhotoRecord) -> None:
        self._jobs.setdefault(record.candidate.job_key, []).append(record)

    def __iter__(self) -> Iterator[tuple[str, list[PhotoRecord]]]:
        return iter(self._jobs.items())

    def __len__(self) -> int:
        return len(self._jobs)

    def __getitem__(self, job_key: str) -> list[PhotoRecord]:
        return self._jobs[job_key]

    def jobs(self) -> list[str]:
        return list(self._jobs)


@dataclass
class JobReport:
    """Per-job counters shown at the end of a run."""

    job: str
    attempted: int = 0
    skipped: int = 0
    transferred: int = 0
    committed: int = 0
    failed: int = 0
    orphaned: int = 0
    commit_failed: bool = False
    commit_error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.commit_failed and self.failed == 0

    @property
    def status(self) -> str:
        if self.commit_failed:
            return "stored, NOT indexed"
        if self.failed:
            return "partial"
        return "ok"


@dataclass
class SyncResult:
    """Aggregated result of a sync run."""

    jobs: dict[str, JobReport] = field(default_factory=dict)
    found: int = 0
    ineligible: int = 0
    duplicates: int = 0
    check_failures: int = 0
    listing_failures: int = 0
    dry_run: bool = False

    def job(self, job_key: str) -> JobReport:
        if job_key not in self.jobs:
            self.jobs[job_key] = JobReport(job=job_key)
        return self.jobs[job_key]

    def total(self, counter: str) -> int:
        return sum(getattr(report, counter) for report in self.jobs.values())

    @property
    def failed_commits(self) -> list[JobReport]:
        return [report for report in self.jobs.values() if report.commit_failed]

    @property
    def all_ok(self) -> bool:
        return all(report.ok for report in self.jobs.values()) and not self.listing_failures

    def summary(self) -> str:
        lines = [
            f"Found       : {self.found}",
            f"Ineligible  : {self.ineligible}",
            f"Attempted   : {self.total('attempted')}",
            f"Skipped     : {self.total('skipped')}",
            f"Transferred : {self.total('transferred')}",
            f"Committed   : {self.total('committed')}",
            f"Failed      : {self.total('failed')}",
        ]
        if self.total("orphaned"):
            lines.append(f"Orphaned    : {self.total('orphaned')}")
        if self.listing_failures:
            lines.append(f"Unlisted folders: {self.listing_failures}")
        for report in self.failed_commits:
            lines.append(f"  - {report.job}: stored but not indexed ({report.commit_error})")
        return "\n".join(lines)
