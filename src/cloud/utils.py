"""
Utility functions for cloud operations.
"""

import logging
from typing import Any, Dict


def check_cloud_config(config: Dict[str, Any]) -> bool:
    """
    Check if the `cloud` section of the configuration is usable.

    A disabled section is always valid; an enabled one needs a project and
    a bucket. Without a credentials file, default credentials are used.

    Args:
        config: The `cloud` configuration dictionary

    Returns:
        Boolean indicating if the configuration is valid
    """
    if not isinstance(config, dict):
        logging.error("Invalid cloud configuration: expected a mapping")
        return False

    if not config.get("enabled", False):
        return True

    for setting in ("project_id", "bucket_name"):
        value = config.get(setting)
        if not isinstance(value, str) or not value:
            logging.error(f"Invalid cloud configuration: missing 'cloud.{setting}'")
            return False

    if not isinstance(config.get("credentials_file") or "", str):
        logging.error("Invalid cloud configuration: 'cloud.credentials_file' must be a path")
        return False

    attempts = config.get("max_retry_attempts", 1)
    if not isinstance(attempts, int) or attempts < 1:
        logging.error("Invalid cloud configuration: 'cloud.max_retry_attempts' must be >= 1")
        return False

    return True


def format_cloud_path(bucket_name: str, blob_name: str) -> str:
    """Format a cloud storage URL for logging."""
    return f"gs://{bucket_name}/{blob_name}"
