"""
Detection models for object detection results.

Coordinate convention: every box in this package uses a top-left origin with
y growing downward, both in normalized space ([0, 1]) and in pixel space.
Backends that produce bottom-left-origin boxes convert once, at the backend
boundary, with NormalizedBox.from_bottom_left().
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple


def _clamp01(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def normalize_label(label: str) -> str:
    """Canonical class name: lower case, `-`/`_` as spaces (`license-plate` -> `license plate`)."""
    return " ".join(str(label).lower().replace("-", " ").replace("_", " ").split())


@dataclass(frozen=True)
class PixelRect:
    """
    An axis-aligned rectangle in pixel coordinates (top-left origin).

    Attributes:
        x1: Left edge (inclusive).
        y1: Top edge (inclusive).
        x2: Right edge (exclusive).
        y2: Bottom edge (exclusive).
    """
    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def area(self) -> int:
        return max(self.width, 0) * max(self.height, 0)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)


@dataclass(frozen=True)
class NormalizedBox:
    """
    A bounding box in normalized image coordinates.

    Attributes:
        x: Left edge as a fraction of image width.
        y: Top edge as a fraction of image height.
        width: Box width as a fraction of image width.
        height: Box height as a fraction of image height.
    """
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "NormalizedBox":
        """Create from normalized corner coordinates, clamped to [0, 1]."""
        x1, y1, x2, y2 = (_clamp01(v) for v in (x1, y1, x2, y2))
        return cls(
            x=min(x1, x2),
            y=min(y1, y2),
            width=abs(x2 - x1),
            height=abs(y2 - y1),
        )

    @classmethod
    def from_bottom_left(cls, x: float, y: float, width: float, height: float) -> "NormalizedBox":
        """Convert a bottom-left-origin normalized box to the top-left convention."""
        return cls(x=x, y=1.0 - y - height, width=width, height=height)

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    def to_pixel_rect(self, image_width: int, image_height: int) -> PixelRect:
        """
        Map to pixel space for an image of the given size.

        Edges are rounded outward and clipped to the image, so the pixel
        rectangle always covers the whole detected area.
        """
        x1 = math.floor(_clamp01(self.x) * image_width)
        y1 = math.floor(_clamp01(self.y) * image_height)
        x2 = math.ceil(_clamp01(self.x2) * image_width)
        y2 = math.ceil(_clamp01(self.y2) * image_height)
        return PixelRect(x1=x1, y1=y1, x2=x2, y2=y2)

    def to_dict(self) -> Dict[str, float]:
        """Serialize as the metadata `boundingBox` object."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class Detection:
    """
    A single detection from the detector.

    Attributes:
        label: Canonical class name (see normalize_label).
        confidence: Detection confidence score (0-1).
        box: Normalized bounding box (top-left origin).
    """
    label: str
    confidence: float
    box: NormalizedBox

    @classmethod
    def from_xyxyn(
        cls,
        label: str,
        confidence: float,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
    ) -> "Detection":
        """Create from normalized corner coordinates."""
        return cls(
            label=normalize_label(label),
            confidence=float(confidence),
            box=NormalizedBox.from_xyxy(x1, y1, x2, y2),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize as one entry of the metadata `predictions` list."""
        return {
            "label": self.label,
            "confidence": self.confidence,
            "boundingBox": self.box.to_dict(),
        }
