"""Shared fakes for the sync pipeline tests."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from photo_sync.clients.index_db import PhotoIndex
from photo_sync.committer import MetadataCommitter
from photo_sync.dedup import ExistenceOracle
from photo_sync.errors import ListingError, StorageError, TransferError
from photo_sync.models import FILE, FOLDER, FolderNode, ListingPage, PhotoMetadata
from photo_sync.sync_engine import SyncEngine
from photo_sync.transfer import TransferPool


class FakeDrive:
    """In-memory folder tree with paged listings.

    Built from nested dicts: a dict value is a folder, a bytes value a file.
    Ids are opaque ("n1", "n2", ...); ``id_of(path)`` maps a slash-joined
    path back to its id.
    """

    def __init__(self, tree: dict, page_size: int = 1000, root_id: str = "root"):
        self.root_id = root_id
        self.page_size = page_size
        self.children: dict[str, list[FolderNode]] = {}
        self.contents: dict[str, bytes] = {}
        self.ids: dict[str, str] = {"": root_id}
        self.failing_folders: set[str] = set()
        self.broken_folders: set[str] = set()
        self.failing_downloads: set[str] = set()
        self.list_calls: list[tuple[str, str | None]] = []
        self.downloads: list[str] = []
        self.destinations: list[Path] = []
        self._add(root_id, "", tree)

    def id_of(self, path: str) -> str:
        return self.ids[path]

    def _add(self, folder_id: str, prefix: str, tree: dict) -> None:
        entries = []
        for name, value in tree.items():
            path = f"{prefix}/{name}" if prefix else name
            node_id = f"n{len(self.ids)}"
            self.ids[path] = node_id
            if isinstance(value, dict):
                entries.append(FolderNode(node_id, name, FOLDER))
                self._add(node_id, path, value)
            else:
                entries.append(FolderNode(node_id, name, FILE))
                self.contents[node_id] = value
        self.children[folder_id] = entries

    def link(self, folder_id: str, name: str, target_id: str) -> None:
        """Add a folder entry pointing at an existing folder (a cycle)."""
        self.children[folder_id].append(FolderNode(target_id, name, FOLDER))

    def list_folder(self, folder_id: str, page_token: str | None = None) -> ListingPage:
        self.list_calls.append((folder_id, page_token))
        if folder_id in self.failing_folders:
            raise ListingError(folder_id, "HTTP 503")
        if folder_id in self.broken_folders:
            raise PermissionError(folder_id)
        entries = self.children[folder_id]
        start = int(page_token or 0)
        end = start + self.page_size
        return ListingPage(
            entries=entries[start:end],
            next_page_token=str(end) if end < len(entries) else None,
        )

    def download_file(self, file_id: str, dest_path: Path) -> Path:
        self.downloads.append(file_id)
        if file_id in self.failing_downloads:
            raise TransferError(f"download of {file_id} failed")
        dest_path = Path(dest_path)
        self.destinations.append(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest_path.write_bytes(self.contents[file_id])
        return dest_path


class FakeStore:
    """Thread-safe in-memory bucket that records upload concurrency."""

    def __init__(self, delay: float = 0.0):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.failing_keys: set[str] = set()
        self.broken_keys: set[str] = set()
        self.head_calls: list[str] = []
        self.put_calls: list[str] = []
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def exists(self, key: str) -> bool:
        self.head_calls.append(key)
        if key in self.broken_keys:
            raise StorageError(f"head_object {key} failed: InternalError")
        return key in self.objects

    def public_url(self, key: str) -> str:
        return f"https://cdn.example.com/{key}"

    def put_file(self, key: str, local_path: Path, content_type: str) -> str:
        with self._lock:
            self.put_calls.append(key)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if key in self.failing_keys:
                raise StorageError(f"put_object {key} failed")
            data = Path(local_path).read_bytes()
            with self._lock:
                self.objects[key] = data
                self.content_types[key] = content_type
        finally:
            with self._lock:
                self.active -= 1
        return self.public_url(key)


class StubExtractor:
    """Returns canned metadata keyed by original filename."""

    def __init__(self, by_filename: dict[str, PhotoMetadata] | None = None):
        self.by_filename = by_filename or {}
        self.seen: list[str] = []

    def __call__(self, path: Path) -> PhotoMetadata:
        # scratch files are named "<remote id>_<filename>"
        filename = Path(path).name.split("_", 1)[1]
        self.seen.append(filename)
        return self.by_filename.get(filename, PhotoMetadata())


@pytest.fixture
def index(tmp_path):
    idx = PhotoIndex(f"sqlite:///{tmp_path / 'index.db'}")
    idx.create_schema()
    yield idx
    idx.close()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_engine(tmp_path):
    def _make(
        drive,
        store,
        index,
        *,
        dry_run=False,
        concurrency=5,
        extractor=None,
        committer=None,
        backfill_orphans=False,
    ):
        return SyncEngine(
            source=drive,
            oracle=ExistenceOracle(store, index),
            extractor=extractor or StubExtractor(),
            pool=TransferPool(store, concurrency=concurrency, dry_run=dry_run),
            committer=committer or MetadataCommitter(index, dry_run=dry_run),
            scratch_dir=tmp_path / "scratch",
            backfill_orphans=backfill_orphans,
        )

    return _make
