"""
DeliveryRecord model: one encoded image plus its metadata document.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from .detection import Detection
from .location import GpsFix

BLOB_PREFIX = "detection_"
IMAGE_SUFFIX = ".jpg"
METADATA_SUFFIX = ".json"


def format_capture_time(timestamp: float) -> str:
    """
    Format a unix timestamp as `YYYYmmdd_HHMMSSfff` (local time, millisecond resolution).
    """
    dt = datetime.fromtimestamp(timestamp)
    return dt.strftime("%Y%m%d_%H%M%S") + f"{dt.microsecond // 1000:03d}"


def blob_base_name(timestamp: float) -> str:
    """Base name shared by the image and metadata blobs of one capture."""
    return f"{BLOB_PREFIX}{format_capture_time(timestamp)}"


def _blank(value: Optional[Any]) -> Any:
    return "" if value is None else value


def build_metadata(
    date: str,
    detections: Iterable[Detection],
    gps: Optional[GpsFix] = None,
    image_timestamp: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Build the metadata document delivered next to each image.

    Location and timestamp fields are empty strings when unavailable;
    they are never omitted.
    """
    return {
        "date": date,
        "predictions": [d.to_dict() for d in detections],
        "latitude": gps.latitude if gps else "",
        "longitude": gps.longitude if gps else "",
        "image_timestamp": _blank(image_timestamp),
        "gps_timestamp": _blank(gps.timestamp) if gps else "",
        "gps_accuracy": _blank(gps.accuracy) if gps else "",
    }


@dataclass(frozen=True)
class DeliveryRecord:
    """
    A packaged detection ready for upload.

    Attributes:
        base_name: `detection_<capture time>`; shared by both blobs.
        image: JPEG-encoded image bytes.
        metadata: Metadata document (see build_metadata).
    """
    base_name: str
    image: bytes
    metadata: Dict[str, Any]

    @property
    def image_blob_name(self) -> str:
        return f"{self.base_name}{IMAGE_SUFFIX}"

    @property
    def metadata_blob_name(self) -> str:
        return f"{self.base_name}{METADATA_SUFFIX}"

    def metadata_bytes(self) -> bytes:
        """Serialize the metadata document as pretty-printed UTF-8 JSON."""
        return json.dumps(self.metadata, indent=2).encode("utf-8")
