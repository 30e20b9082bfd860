"""
Typed models for the detection-to-delivery pipeline.
"""

from .frame import FrameData
from .detection import Detection, NormalizedBox, PixelRect
from .location import GpsFix
from .record import DeliveryRecord, blob_base_name, build_metadata
from .status import PipelineCounters, PipelineStatus
from .errors import (
    PipelineError,
    ConfigError,
    ModelLoadError,
    DetectionError,
    RedactionError,
    UploadError,
)
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    DeliveryConfig,
    BacklogConfig,
    CloudConfig,
    LocationConfig,
    WebConfig,
    ClassThreshold,
    TargetClassConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "Detection",
    "NormalizedBox",
    "PixelRect",
    # Location
    "GpsFix",
    # Delivery
    "DeliveryRecord",
    "blob_base_name",
    "build_metadata",
    # Status
    "PipelineCounters",
    "PipelineStatus",
    # Errors
    "PipelineError",
    "ConfigError",
    "ModelLoadError",
    "DetectionError",
    "RedactionError",
    "UploadError",
    # Config
    "Config",
    "CameraConfig",
    "DetectionConfig",
    "DeliveryConfig",
    "BacklogConfig",
    "CloudConfig",
    "LocationConfig",
    "WebConfig",
    "ClassThreshold",
    "TargetClassConfig",
]
