"""Cloudflare R2 object store – existence checks and uploads over the S3 API."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from photo_sync.errors import StorageError

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class ObjectStore:
    """Key-addressed bucket access. The boto3 client is shared by all upload workers."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        public_base_url: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self._endpoint_url = (endpoint_url or "").rstrip("/")
        self._public_base_url = (public_base_url or "").rstrip("/")
        if client is None:
            client = boto3.client(
                "s3",
                region_name="auto",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=BotoConfig(
                    connect_timeout=10,
                    read_timeout=60,
                    retries={"max_attempts": 3, "mode": "standard"},
                ),
            )
        self._client = client

    # ── queries ──────────────────────────────────────────────────────

    def exists(self, key: str) -> bool:
        """Return True if *key* is stored. Only a not-found answer means False."""
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if str(error.get("Code")) in NOT_FOUND_CODES or status == 404:
                return False
            raise StorageError(f"head_object {key} failed: {error.get('Code')}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"head_object {key} failed: {exc}") from exc
        return True

    def public_url(self, key: str) -> str:
        base = self._public_base_url or f"{self._endpoint_url}/{self.bucket}"
        return f"{base}/{quote(key)}"

    # ── upload ───────────────────────────────────────────────────────

    def put_file(self, key: str, local_path: Path, content_type: str) -> str:
        """Upload *local_path* as *key* and return its public URL."""
        try:
            with open(local_path, "rb") as body:
                self._client.put_object(
                    Bucket=self.bucket, Key=key, Body=body, ContentType=content_type
                )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"put_object {key} failed: {exc}") from exc
        logger.debug("Uploaded %s (%s)", key, content_type)
        return self.public_url(key)

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close:
            close()

    def __enter__(self) -> ObjectStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
