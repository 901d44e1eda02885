"""photo_sync clients – adapters for Google Drive, R2 and the photo index database."""

from .gdrive import GDriveClient
from .index_db import PhotoIndex
from .r2 import ObjectStore

__all__ = ["GDriveClient", "ObjectStore", "PhotoIndex"]
