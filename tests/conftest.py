"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import threading

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.errors import UploadError  # noqa: E402
from models.status import PipelineCounters  # noqa: E402


class RecordingUploader:
    """In-memory uploader; fails while `fail` is set or for names in `fail_names`."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.fail_names = set()
        self.blobs = {}
        self.attempts = []
        self._lock = threading.Lock()

    def upload(self, data: bytes, blob_name: str) -> None:
        with self._lock:
            self.attempts.append(blob_name)
            if self.fail or blob_name in self.fail_names:
                raise UploadError(f"simulated failure for {blob_name}")
            self.blobs[blob_name] = bytes(data)


@pytest.fixture
def uploader():
    return RecordingUploader()


@pytest.fixture
def failing_uploader():
    return RecordingUploader(fail=True)


@pytest.fixture
def counters():
    return PipelineCounters()


@pytest.fixture
def fallback_dir(tmp_path):
    return str(tmp_path / "Detections")


@pytest.fixture
def gray_image():
    """A 480x640 mid-gray BGR image."""
    return np.full((480, 640, 3), 128, dtype=np.uint8)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 2

detection:
  model: "models/detector.pt"
  target_classes:
    container: true
    mobile toilet: true
    scaffolding: true

delivery:
  fallback_dir: "data/Detections"
  jpeg_quality: 50

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 2,
        },
        "detection": {
            "model": "models/detector.pt",
            "target_classes": {
                "container": True,
                "mobile toilet": True,
                "scaffolding": True,
            },
            "class_thresholds": {
                "container": {"iou": 0.45, "confidence": 0.25},
            },
            "redaction_mode": "black",
        },
        "delivery": {
            "fallback_dir": "data/Detections",
            "jpeg_quality": 50,
            "upload_workers": 0,
        },
        "cloud": {"enabled": False},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
