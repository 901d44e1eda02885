"""Exception hierarchy shared by the sync pipeline and its clients."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every error raised by photo_sync."""


class ConfigError(SyncError):
    """Required configuration is missing or invalid."""


class ListingError(SyncError):
    """A folder listing failed in a way the walk can recover from."""

    def __init__(self, folder_id: str, message: str):
        super().__init__(f"listing {folder_id} failed: {message}")
        self.folder_id = folder_id


class StorageError(SyncError):
    """The object store returned something other than success or not-found."""


class ExistenceCheckError(SyncError):
    """Could not tell whether a filename was already transferred."""

    def __init__(self, filename: str, cause: Exception):
        super().__init__(f"existence check failed for {filename}: {cause}")
        self.filename = filename


class TransferError(SyncError):
    """Download or upload of a single photo failed."""


class CommitError(SyncError):
    """A job's index batch was rolled back."""

    def __init__(self, job: str, message: str):
        super().__init__(f"commit for job {job} failed: {message}")
        self.job = job
