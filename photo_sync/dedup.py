"""Existence oracle – has a filename already been migrated?"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from photo_sync.errors import ExistenceCheckError, StorageError

logger = logging.getLogger(__name__)


class KeyStore(Protocol):
    def exists(self, key: str) -> bool: ...


class FilenameIndex(Protocol):
    def exists_by_filename(self, filename: str) -> bool: ...


@dataclass(frozen=True)
class ExistenceCheck:
    in_store: bool
    in_index: bool

    @property
    def exists(self) -> bool:
        return self.in_store or self.in_index

    @property
    def orphaned(self) -> bool:
        """Stored in the bucket but never indexed."""
        return self.in_store and not self.in_index


class ExistenceOracle:
    """Checks the object store and the index for a filename.

    Both lookups always run. A store failure other than not-found is raised
    once the index lookup is done, instead of being read as "absent".
    """

    def __init__(self, store: KeyStore, index: FilenameIndex):
        self._store = store
        self._index = index

    def check(self, filename: str) -> ExistenceCheck:
        store_error: StorageError | None = None
        in_store = False
        try:
            in_store = self._store.exists(filename)
        except StorageError as exc:
            store_error = exc

        try:
            in_index = self._index.exists_by_filename(filename)
        except Exception as exc:
            raise ExistenceCheckError(filename, exc) from exc

        if store_error is not None:
            raise ExistenceCheckError(filename, store_error) from store_error
        return ExistenceCheck(in_store=in_store, in_index=in_index)

    def exists(self, filename: str) -> bool:
        return self.check(filename).exists
