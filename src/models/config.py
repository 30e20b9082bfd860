"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .detection import normalize_label

DEFAULT_IOU = 0.45
DEFAULT_CONFIDENCE = 0.25

TARGET_CLASSES = ("container", "mobile toilet", "scaffolding")
SENSITIVE_CLASSES = frozenset({"person", "license plate"})

REDACTION_MODES = ("black", "blur")


@dataclass(frozen=True)
class ClassThreshold:
    """Per-class NMS IoU and minimum confidence."""
    iou: float = DEFAULT_IOU
    confidence: float = DEFAULT_CONFIDENCE

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ClassThreshold":
        return cls(
            iou=float(d.get("iou", DEFAULT_IOU)),
            confidence=float(d.get("confidence", DEFAULT_CONFIDENCE)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"iou": self.iou, "confidence": self.confidence}


@dataclass(frozen=True)
class TargetClassConfig:
    """A class eligible for delivery."""
    name: str
    enabled: bool = True


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 2
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 2),
            rotate=d.get("rotate", 0),
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class DetectionConfig:
    """Detector, classification, redaction and annotation settings."""
    model: str = ""
    target_classes: Dict[str, bool] = field(
        default_factory=lambda: {name: True for name in TARGET_CLASSES}
    )
    class_thresholds: Dict[str, ClassThreshold] = field(default_factory=dict)
    class_name_overrides: Optional[Dict[int, str]] = None
    redaction_mode: str = "black"
    blur_radius: int = 20
    draw_labels: bool = True
    line_width: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        targets = {name: True for name in TARGET_CLASSES}
        for name, enabled in (d.get("target_classes") or {}).items():
            targets[normalize_label(name)] = bool(enabled)
        thresholds = {
            normalize_label(name): ClassThreshold.from_dict(values or {})
            for name, values in (d.get("class_thresholds") or {}).items()
        }
        return cls(
            model=d.get("model", ""),
            target_classes=targets,
            class_thresholds=thresholds,
            class_name_overrides=d.get("class_name_overrides"),
            redaction_mode=d.get("redaction_mode", "black"),
            blur_radius=int(d.get("blur_radius", 20)),
            draw_labels=d.get("draw_labels", True),
            line_width=int(d.get("line_width", 3)),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "model": self.model,
            "target_classes": dict(self.target_classes),
            "class_thresholds": {k: v.to_dict() for k, v in self.class_thresholds.items()},
            "redaction_mode": self.redaction_mode,
            "blur_radius": self.blur_radius,
            "draw_labels": self.draw_labels,
            "line_width": self.line_width,
        }
        if self.class_name_overrides is not None:
            d["class_name_overrides"] = self.class_name_overrides
        return d

    def target_configs(self) -> List[TargetClassConfig]:
        return [TargetClassConfig(name, enabled) for name, enabled in self.target_classes.items()]


@dataclass
class DeliveryConfig:
    """Packaging and local fallback settings."""
    fallback_dir: str = "data/Detections"
    jpeg_quality: int = 50
    upload_workers: int = 2

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DeliveryConfig":
        return cls(
            fallback_dir=d.get("fallback_dir", "data/Detections"),
            jpeg_quality=int(d.get("jpeg_quality", 50)),
            upload_workers=int(d.get("upload_workers", 2)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fallback_dir": self.fallback_dir,
            "jpeg_quality": self.jpeg_quality,
            "upload_workers": self.upload_workers,
        }


@dataclass
class BacklogConfig:
    """Backlog drainer schedule."""
    interval_seconds: float = 300.0
    drain_on_start: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BacklogConfig":
        return cls(
            interval_seconds=float(d.get("interval_seconds", 300.0)),
            drain_on_start=d.get("drain_on_start", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_seconds": self.interval_seconds,
            "drain_on_start": self.drain_on_start,
        }


@dataclass
class CloudConfig:
    """Blob store (Google Cloud Storage) settings."""
    enabled: bool = False
    project_id: str = ""
    credentials_file: str = ""
    bucket_name: str = ""
    prefix: str = ""
    endpoint: Optional[str] = None
    max_retry_attempts: int = 1
    retry_delay_seconds: float = 1.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CloudConfig":
        return cls(
            enabled=d.get("enabled", False),
            project_id=d.get("project_id", ""),
            credentials_file=d.get("credentials_file", ""),
            bucket_name=d.get("bucket_name", ""),
            prefix=d.get("prefix", ""),
            endpoint=d.get("endpoint"),
            max_retry_attempts=int(d.get("max_retry_attempts", 1)),
            retry_delay_seconds=float(d.get("retry_delay_seconds", 1.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "project_id": self.project_id,
            "credentials_file": self.credentials_file,
            "bucket_name": self.bucket_name,
            "prefix": self.prefix,
            "endpoint": self.endpoint,
            "max_retry_attempts": self.max_retry_attempts,
            "retry_delay_seconds": self.retry_delay_seconds,
        }


@dataclass
class LocationConfig:
    """Optional fixed position for stationary installations."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LocationConfig":
        return cls(
            latitude=d.get("latitude"),
            longitude=d.get("longitude"),
            accuracy=d.get("accuracy"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
        }


@dataclass
class WebConfig:
    """Status API settings."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=int(d.get("port", 5000)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    backlog: BacklogConfig = field(default_factory=BacklogConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    location: LocationConfig = field(default_factory=LocationConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/detector.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            detection=DetectionConfig.from_dict(d.get("detection") or {}),
            delivery=DeliveryConfig.from_dict(d.get("delivery") or {}),
            backlog=BacklogConfig.from_dict(d.get("backlog") or {}),
            cloud=CloudConfig.from_dict(d.get("cloud") or {}),
            location=LocationConfig.from_dict(d.get("location") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            log_path=d.get("log_path", "logs/detector.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "delivery": self.delivery.to_dict(),
            "backlog": self.backlog.to_dict(),
            "cloud": self.cloud.to_dict(),
            "location": self.location.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
