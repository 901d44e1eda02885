"""Tree walker – recursively enumerates photos under a remote folder."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Protocol

from photo_sync.errors import ListingError
from photo_sync.models import FolderNode, ListingPage, PhotoCandidate

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".heic")


class ListingProvider(Protocol):
    def list_folder(self, folder_id: str, page_token: str | None = None) -> ListingPage: ...


class TreeWalker:
    """Depth-first walk over a paged folder listing.

    Every folder is listed to completion before its entries are processed;
    sub-folders are descended into as soon as they are reached, so a folder's
    whole subtree is emitted before its next sibling.
    """

    def __init__(
        self,
        provider: ListingProvider,
        extensions: Iterable[str] = IMAGE_EXTENSIONS,
    ):
        self._provider = provider
        self._extensions = tuple(ext.lower() for ext in extensions)
        self.failed_folders: list[str] = []

    def walk(self, root_id: str) -> list[PhotoCandidate]:
        """Return every photo under *root_id* with its ancestor folder names."""
        self.failed_folders = []
        return self._walk(root_id, (), set())

    def is_photo(self, name: str) -> bool:
        return name.lower().endswith(self._extensions)

    # ── internals ────────────────────────────────────────────────────

    def _walk(
        self,
        folder_id: str,
        path: tuple[str, ...],
        visited: set[str],
    ) -> list[PhotoCandidate]:
        label = " / ".join(path) or "[root]"
        if folder_id in visited:
            logger.warning("Folder %s (%s) already visited, skipping cycle.", label, folder_id)
            return []
        visited.add(folder_id)

        try:
            entries = list(self._list_all(folder_id))
        except ListingError as exc:
            logger.error("Skipping subtree %s: %s", label, exc)
            self.failed_folders.append(folder_id)
            return []
        logger.info("  Scanning: %s (%d items)", label, len(entries))

        found: list[PhotoCandidate] = []
        for entry in entries:
            if entry.is_folder:
                found.extend(self._walk(entry.id, (*path, entry.name), visited))
            elif self.is_photo(entry.name):
                logger.debug("Found photo: %s / %s", label, entry.name)
                found.append(PhotoCandidate(entry.id, entry.name, path))
            else:
                logger.debug("Ignoring non-photo file: %s / %s", label, entry.name)
        return found

    def _list_all(self, folder_id: str) -> Iterator[FolderNode]:
        page_token = None
        while True:
            page = self._provider.list_folder(folder_id, page_token)
            yield from page.entries
            page_token = page.next_page_token
            if not page_token:
                break
