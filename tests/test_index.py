"""Tests for the photo index and the metadata committer."""

from datetime import datetime

import pytest

from photo_sync.clients.index_db import PhotoIndex, normalize_url
from photo_sync.committer import MetadataCommitter
from photo_sync.errors import CommitError
from photo_sync.models import PhotoCandidate, PhotoMetadata, PhotoRecord

JOB = "C/P/J"


def row(name, **extra):
    data = {"filename": name, "r2_key": name, "cloudflare_link": f"https://cdn/{name}"}
    data.update(extra)
    return data


def record(name, key=True):
    rec = PhotoRecord(
        PhotoCandidate("id-" + name, name, ("C", "P", "J", "K")),
        metadata=PhotoMetadata(latitude=19.0, longitude=-71.0, captured_at=datetime(2024, 1, 2, 3, 4, 5)),
    )
    if key:
        rec.storage_key = name
        rec.public_url = f"https://cdn/{name}"
    return rec


class TestPhotoIndex:

    def test_exists_by_filename(self, index):
        index.insert_batch(JOB, [row("a.jpg")])

        assert index.exists_by_filename("a.jpg")
        assert not index.exists_by_filename("b.jpg")

    def test_batch_is_atomic(self, index):
        batch = [row("a.jpg"), row("b.jpg"), row("a.jpg")]

        with pytest.raises(CommitError) as excinfo:
            index.insert_batch(JOB, batch)

        assert excinfo.value.job == JOB
        assert index.count() == 0
        assert not index.exists_by_filename("a.jpg")

    def test_conflict_with_existing_row_rolls_back_batch(self, index):
        index.insert_batch("other", [row("c.jpg")])

        with pytest.raises(CommitError):
            index.insert_batch(JOB, [row("a.jpg"), row("b.jpg"), row("c.jpg")])

        assert index.filenames() == {"c.jpg"}

    def test_create_schema_is_repeatable(self, index):
        index.create_schema()

        assert index.count() == 0

    def test_custom_table_name(self, tmp_path):
        idx = PhotoIndex(f"sqlite:///{tmp_path / 'custom.db'}", table_name="photos_v2")
        idx.create_schema()

        idx.insert_batch(JOB, [row("a.jpg")])

        assert idx.table.name == "photos_v2"
        assert idx.filenames() == {"a.jpg"}
        idx.close()

    def test_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            PhotoIndex()

    def test_postgres_scheme_is_normalized(self):
        assert normalize_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
        assert normalize_url("sqlite:///x.db") == "sqlite:///x.db"


class TestMetadataCommitter:

    def test_commit_writes_rows(self, index):
        count = MetadataCommitter(index).commit(JOB, [record("a.jpg"), record("b.jpg")])

        assert count == 2
        assert index.filenames() == {"a.jpg", "b.jpg"}

    def test_untransferred_record_is_rejected(self, index):
        with pytest.raises(CommitError):
            MetadataCommitter(index).commit(JOB, [record("a.jpg"), record("b.jpg", key=False)])

        assert index.count() == 0

    def test_failure_is_reported(self, index):
        index.insert_batch("other", [row("b.jpg")])

        with pytest.raises(CommitError):
            MetadataCommitter(index).commit(JOB, [record("a.jpg"), record("b.jpg")])

        assert index.filenames() == {"b.jpg"}

    def test_dry_run_writes_nothing(self, index):
        count = MetadataCommitter(index, dry_run=True).commit(JOB, [record("a.jpg")])

        assert count == 1
        assert index.count() == 0

    def test_empty_batch_is_a_noop(self, index):
        assert MetadataCommitter(index).commit(JOB, []) == 0
