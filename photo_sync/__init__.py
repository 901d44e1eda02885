"""photo_sync – migrate Google Drive job photos into R2 and the photo index."""

__version__ = "0.1.0"
