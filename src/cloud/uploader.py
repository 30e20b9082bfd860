"""
Blob uploaders for delivering images and metadata to the cloud.
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Protocol

from models.config import CloudConfig
from models.errors import UploadError

from .utils import format_cloud_path

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".json": "application/json",
}


def content_type_for(blob_name: str) -> str:
    for suffix, content_type in CONTENT_TYPES.items():
        if blob_name.endswith(suffix):
            return content_type
    return "application/octet-stream"


class BlobUploader(Protocol):
    def upload(self, data: bytes, blob_name: str) -> None:
        """
        Store `data` under `blob_name`.

        Raises:
            UploadError: On any failure (network, auth, timeout).
        """
        ...


class DisabledUploader:
    """Local-only mode: every upload fails, so all records go to the fallback directory."""

    def upload(self, data: bytes, blob_name: str) -> None:
        raise UploadError("Cloud upload is disabled")


class GcsBlobUploader:
    """Uploads blobs into a Google Cloud Storage bucket."""

    def __init__(self, config: CloudConfig, bucket=None):
        """
        Initialize the uploader.

        Args:
            config: Cloud configuration.
            bucket: Pre-built bucket object (tests); built from config when omitted.

        Raises:
            UploadError: If the storage client cannot be created.
        """
        self.config = config
        self.prefix = config.prefix.strip("/")
        self.max_retry_attempts = max(1, config.max_retry_attempts)
        self.retry_delay = config.retry_delay_seconds
        self.bucket = bucket if bucket is not None else self._create_bucket(config)

    @staticmethod
    def _create_bucket(config: CloudConfig):
        try:
            from google.cloud import storage
            from .auth import load_credentials

            credentials = load_credentials(config.credentials_file)

            client_options = {"api_endpoint": config.endpoint} if config.endpoint else None
            client = storage.Client(
                project=config.project_id,
                credentials=credentials,
                client_options=client_options,
            )
            bucket = client.bucket(config.bucket_name)
            logging.info(f"Cloud uploader initialized for bucket '{config.bucket_name}'")
            return bucket
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Failed to initialize cloud storage client: {e}") from e

    def _object_name(self, blob_name: str) -> str:
        return f"{self.prefix}/{blob_name}" if self.prefix else blob_name

    def upload(self, data: bytes, blob_name: str) -> None:
        object_name = self._object_name(blob_name)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retry_attempts):
            try:
                blob = self.bucket.blob(object_name)
                blob.upload_from_string(data, content_type=content_type_for(blob_name))
                logging.info(f"Uploaded blob: {format_cloud_path(self.bucket.name, object_name)}")
                return
            except Exception as e:
                last_error = e
                if attempt < self.max_retry_attempts - 1:
                    wait_time = self.retry_delay * (2 ** attempt)  # Exponential backoff
                    logging.warning(
                        f"Upload of {object_name} failed (attempt {attempt + 1}/{self.max_retry_attempts}): {e}"
                    )
                    time.sleep(wait_time)

        raise UploadError(f"Upload of {object_name} failed: {last_error}") from last_error


def create_uploader(config: CloudConfig) -> BlobUploader:
    """Build the uploader for `config`; falls back to local-only mode when cloud is unavailable."""
    if not config.enabled:
        logging.info("Cloud upload disabled, running in local-only mode")
        return DisabledUploader()
    try:
        return GcsBlobUploader(config)
    except UploadError as e:
        logging.error(f"{e}; running in local-only mode")
        return DisabledUploader()
