"""
Privacy redaction: covers sensitive regions before an image leaves the device.
"""

from __future__ import annotations

import logging
from typing import Sequence

import cv2
import numpy as np

from models.detection import PixelRect
from models.errors import RedactionError


def _check_image(image) -> None:
    if not isinstance(image, np.ndarray):
        raise RedactionError(f"Cannot redact {type(image).__name__}: not a pixel array")
    if image.size == 0 or image.ndim not in (2, 3):
        raise RedactionError(f"Cannot redact image with shape {getattr(image, 'shape', None)}")
    if image.dtype != np.uint8:
        raise RedactionError(f"Cannot redact image with dtype {image.dtype}")


def _clip(rect: PixelRect, width: int, height: int) -> PixelRect:
    return PixelRect(
        x1=max(rect.x1, 0),
        y1=max(rect.y1, 0),
        x2=min(rect.x2, width),
        y2=min(rect.y2, height),
    )


class Redactor:
    """
    Covers regions with opaque black (default) or a Gaussian blur.

    Black fills are written straight into the pixel array, so overlapping
    regions are fully covered whatever the box order, and redacting an
    already-black region changes nothing.
    """

    def __init__(self, mode: str = "black", blur_radius: int = 20):
        if mode not in ("black", "blur"):
            raise ValueError(f"Unknown redaction mode: {mode}")
        self.mode = mode
        self.blur_radius = blur_radius

    def redact(self, image: np.ndarray, boxes: Sequence[PixelRect]) -> np.ndarray:
        """
        Return a redacted copy of `image`.

        Raises:
            RedactionError: If the image is unusable or coverage cannot be verified.
        """
        if not boxes:
            return image

        _check_image(image)
        height, width = image.shape[:2]
        output = image.copy()
        regions = [r for r in (_clip(b, width, height) for b in boxes) if not r.is_empty]

        for rect in regions:
            if self.mode == "black":
                output[rect.y1:rect.y2, rect.x1:rect.x2] = 0
            else:
                output[rect.y1:rect.y2, rect.x1:rect.x2] = self._blur(output[rect.y1:rect.y2, rect.x1:rect.x2])

        if self.mode == "black":
            self._verify(output, regions)

        logging.debug(f"Redacted {len(regions)} regions ({self.mode})")
        return output

    def _blur(self, region: np.ndarray) -> np.ndarray:
        # Kernel must be odd; sigma follows the radius
        ksize = 2 * int(self.blur_radius) + 1
        return cv2.GaussianBlur(region, (ksize, ksize), self.blur_radius)

    @staticmethod
    def _verify(output: np.ndarray, regions: Sequence[PixelRect]) -> None:
        for rect in regions:
            if np.any(output[rect.y1:rect.y2, rect.x1:rect.x2]):
                raise RedactionError(f"Region {rect.as_tuple()} is not fully covered")
