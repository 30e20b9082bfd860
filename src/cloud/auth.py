"""
Credentials for the blob store.

An explicit service-account key file wins; without one, the environment's
application default credentials are used (workload identity, gcloud login).
"""

import logging
import os

import google.auth
from google.auth import credentials as auth_credentials
from google.auth.exceptions import DefaultCredentialsError
from google.oauth2 import service_account

from models.errors import UploadError

STORAGE_SCOPES = ("https://www.googleapis.com/auth/devstorage.read_write",)


def load_credentials(credentials_file: str = "") -> auth_credentials.Credentials:
    """
    Load credentials scoped for object uploads.

    Args:
        credentials_file: Service-account JSON key; empty means application default credentials.

    Raises:
        UploadError: If no usable credentials are found.
    """
    if not credentials_file:
        try:
            credentials, _ = google.auth.default(scopes=STORAGE_SCOPES)
        except DefaultCredentialsError as e:
            raise UploadError(f"No cloud credentials configured: {e}") from e
        logging.info("Using application default credentials for uploads")
        return credentials

    if not os.path.isfile(credentials_file):
        raise UploadError(f"Credentials file not found: {credentials_file}")

    try:
        credentials = service_account.Credentials.from_service_account_file(
            credentials_file, scopes=STORAGE_SCOPES
        )
    except (ValueError, OSError) as e:
        raise UploadError(f"Invalid credentials file {credentials_file}: {e}") from e

    logging.info(f"Loaded uploader credentials from {credentials_file}")
    return credentials
