"""Google Drive client – lists folders page by page and downloads files."""

from __future__ import annotations

import logging
from pathlib import Path

import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload

from photo_sync.errors import ListingError, TransferError
from photo_sync.models import FILE, FOLDER, FolderNode, ListingPage

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

PAGE_SIZE = 1000
MAX_RETRIES = 3
# Rate limits and server-side failures; everything else aborts the walk.
RECOVERABLE_STATUS = {403, 429, 500, 502, 503, 504}


class GDriveClient:
    """Wraps the Drive v3 API for paged folder listing and file download.

    Credentials come from a stored refresh token; acquiring that token is
    outside this client. The underlying service object is not thread-safe,
    so a client must only be used from one thread.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        shared_drive_id: str | None = None,
        service=None,
    ):
        if service is None:
            creds = self._authenticate(client_id, client_secret, refresh_token)
            service = build("drive", "v3", credentials=creds, cache_discovery=False)
        self._service = service
        self._shared_drive_id = shared_drive_id

    # ── authentication ──────────────────────────────────────────────

    @staticmethod
    def _authenticate(client_id: str, client_secret: str, refresh_token: str) -> Credentials:
        creds = Credentials(
            None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=client_id,
            client_secret=client_secret,
            scopes=SCOPES,
        )
        creds.refresh(Request())
        return creds

    # ── listing ─────────────────────────────────────────────────────

    @staticmethod
    def _escape_query(value: str) -> str:
        """Escape a value for use in a Google Drive API query string."""
        return value.replace("\\", "\\\\").replace("'", "\\'")

    def _drive_params(self) -> dict:
        params = {"supportsAllDrives": True, "includeItemsFromAllDrives": True}
        if self._shared_drive_id:
            params.update(corpora="drive", driveId=self._shared_drive_id)
        return params

    def list_folder(self, folder_id: str, page_token: str | None = None) -> ListingPage:
        """Return one page of the direct children of *folder_id*."""
        query = f"'{self._escape_query(folder_id)}' in parents and trashed = false"
        try:
            resp = (
                self._service.files()
                .list(
                    q=query,
                    fields="nextPageToken, files(id, name, mimeType)",
                    spaces="drive",
                    pageSize=PAGE_SIZE,
                    pageToken=page_token,
                    **self._drive_params(),
                )
                .execute(num_retries=MAX_RETRIES)
            )
        except HttpError as exc:
            if exc.resp.status in RECOVERABLE_STATUS:
                raise ListingError(folder_id, f"HTTP {exc.resp.status}") from exc
            raise
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise ListingError(folder_id, f"network error: {exc}") from exc

        entries = [
            FolderNode(
                id=item["id"],
                name=item.get("name", ""),
                kind=FOLDER if item.get("mimeType") == FOLDER_MIME_TYPE else FILE,
            )
            for item in resp.get("files", [])
        ]
        logger.debug("Listed %d item(s) in %s", len(entries), folder_id)
        return ListingPage(entries=entries, next_page_token=resp.get("nextPageToken"))

    # ── download ────────────────────────────────────────────────────

    def download_file(self, file_id: str, dest_path: Path) -> Path:
        """Download *file_id* to *dest_path*. A partial file is removed on failure."""
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        request = self._service.files().get_media(fileId=file_id, supportsAllDrives=True)
        try:
            with open(dest_path, "wb") as fh:
                downloader = MediaIoBaseDownload(fh, request)
                done = False
                while not done:
                    _, done = downloader.next_chunk(num_retries=MAX_RETRIES)
        except (HttpError, OSError, httplib2.HttpLib2Error) as exc:
            dest_path.unlink(missing_ok=True)
            raise TransferError(f"download of {file_id} failed: {exc}") from exc
        return dest_path

    def close(self) -> None:
        close = getattr(self._service, "close", None)
        if close:
            close()

    def __enter__(self) -> GDriveClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
