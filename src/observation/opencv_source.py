"""
OpenCV-based observation source.

Supports USB cameras (device_id as int), network streams (URL) and video
files (path). Frames are paced to the configured rate; the default of two
frames per second matches what the detection stage can keep up with.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

import cv2
import numpy as np

from models.config import CameraConfig
from models.errors import ConfigError
from models.frame import FrameData
from .base import ObservationSource, ObservationConfig


def sanitize_device(device_id: Union[int, str]) -> str:
    """Device id for logging, with any URL password masked."""
    if not isinstance(device_id, str) or "://" not in device_id:
        return str(device_id)
    parts = urlsplit(device_id)
    if parts.password is None:
        return device_id
    netloc = f"{parts.username}:***@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV sources.

    Attributes:
        device_id: Camera index, stream URL or file path.
        max_retries: Attempts to open the device before giving up.
        rotate: Rotation in degrees (0, 90, 180, 270).
        flip_horizontal: Mirror frames left/right.
        flip_vertical: Mirror frames top/bottom.
    """
    device_id: Union[int, str] = 0
    max_retries: int = 3
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_camera_config(cls, camera: CameraConfig, source_id: str = "camera") -> "OpenCVSourceConfig":
        return cls(
            source_id=source_id,
            resolution=tuple(camera.resolution) if camera.resolution else None,
            fps=camera.fps or None,
            device_id=camera.device_id,
            rotate=camera.rotate or 0,
            flip_horizontal=camera.flip_horizontal,
            flip_vertical=camera.flip_vertical,
        )


class OpenCVSource(ObservationSource):
    """
    cv2.VideoCapture wrapper producing FrameData.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720), fps=2)
        with OpenCVSource(config) as source:
            frame_data = source.read()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._last_frame_time: Optional[float] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        return (
            isinstance(self.device_id, str)
            and "://" not in self.device_id
            and os.path.exists(self.device_id)
        )

    def open(self) -> None:
        if self._is_open:
            return

        for attempt in range(max(1, self._opencv_config.max_retries)):
            if attempt > 0:
                wait_time = min(2 ** attempt, 10)
                logging.info(f"Retrying camera open in {wait_time}s (attempt {attempt + 1})")
                time.sleep(wait_time)
            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            self._cap.release()
            self._cap = None
        else:
            raise RuntimeError(f"Failed to open device {sanitize_device(self.device_id)}")

        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        self._is_open = True
        self._frame_index = 0
        self._last_frame_time = None
        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={sanitize_device(self.device_id)}, fps={self._opencv_config.fps}"
        )

    def _pace(self) -> None:
        """Sleep so frames are delivered no faster than the configured rate."""
        fps = self._opencv_config.fps
        if not fps or self._last_frame_time is None:
            return
        remaining = (1.0 / fps) - (time.time() - self._last_frame_time)
        if remaining > 0:
            time.sleep(remaining)

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None:
            return None

        self._pace()
        ret, frame = self._cap.read()
        if not ret or frame is None:
            if self.is_file:
                logging.info("End of video file reached")
            else:
                logging.warning(f"Failed to read frame from {sanitize_device(self.device_id)}")
            return None

        frame = self._apply_transforms(frame)
        timestamp = time.time()
        self._last_frame_time = timestamp
        self._frame_index += 1
        return FrameData.from_numpy(
            frame, timestamp=timestamp, frame_index=self._frame_index, source=self.source_id
        )

    def _apply_transforms(self, frame: np.ndarray) -> np.ndarray:
        cfg = self._opencv_config

        if cfg.rotate == 90:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        elif cfg.rotate == 180:
            frame = cv2.rotate(frame, cv2.ROTATE_180)
        elif cfg.rotate == 270:
            frame = cv2.rotate(frame, cv2.ROTATE_90_COUNTERCLOCKWISE)

        if cfg.flip_horizontal and cfg.flip_vertical:
            frame = cv2.flip(frame, -1)
        elif cfg.flip_horizontal:
            frame = cv2.flip(frame, 1)
        elif cfg.flip_vertical:
            frame = cv2.flip(frame, 0)

        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")


def create_source_from_config(camera: CameraConfig) -> ObservationSource:
    """Build the frame source for the `camera` section."""
    if camera.backend != "opencv":
        raise ConfigError(f"Unsupported camera backend: {camera.backend}")
    return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera))
