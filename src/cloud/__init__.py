"""
Cloud module: blob uploaders for detection images and metadata.
"""

from .uploader import BlobUploader, DisabledUploader, GcsBlobUploader, create_uploader
from .utils import check_cloud_config, format_cloud_path

__all__ = [
    'BlobUploader',
    'DisabledUploader',
    'GcsBlobUploader',
    'create_uploader',
    'check_cloud_config',
    'format_cloud_path',
]
