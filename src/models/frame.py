"""
FrameData model: one captured image and when/where it was taken.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class FrameData:
    """
    Pixel payload and capture metadata for a single frame.

    The pipeline never writes into `frame`; redaction and annotation
    operate on copies.

    Attributes:
        frame: BGR (or single-channel) uint8 pixels, shape (height, width[, channels]).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix time of capture; becomes the record's blob name and `image_timestamp`.
        frame_index: 1-based position since the source was opened.
        source: Source identifier.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """
        Wrap a captured array.

        Raises:
            ValueError: If `frame` is not a non-empty 2-D or 3-D image.
        """
        if frame.ndim not in (2, 3) or frame.size == 0:
            raise ValueError(f"Not an image: shape {frame.shape}")
        height, width = frame.shape[:2]
        return cls(
            frame=frame,
            width=width,
            height=height,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
        )

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the order NormalizedBox.to_pixel_rect expects."""
        return (self.width, self.height)
