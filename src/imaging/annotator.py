"""
Annotation: outlines target detections on the (already redacted) image.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Sequence, Tuple

import cv2
import numpy as np

from models.detection import PixelRect

Color = Tuple[int, int, int]

# Colors (BGR)
DEFAULT_COLORS: Dict[str, Color] = {
    "container": (0, 0, 255),      # Red
    "mobile toilet": (255, 0, 0),  # Blue
    "scaffolding": (0, 255, 0),    # Green
}
FALLBACK_COLOR: Color = (0, 255, 255)  # Yellow


class Annotator:
    """Draws a colored outline (and optional caption) per target box."""

    def __init__(
        self,
        colors: Optional[Mapping[str, Color]] = None,
        line_width: int = 3,
        draw_labels: bool = True,
    ):
        self.colors = dict(DEFAULT_COLORS if colors is None else colors)
        self.line_width = line_width
        self.draw_labels = draw_labels

    def annotate(
        self,
        image: np.ndarray,
        boxes_by_label: Mapping[str, Sequence[PixelRect]],
        colors: Optional[Mapping[str, Color]] = None,
    ) -> np.ndarray:
        """
        Return an annotated copy of `image`.

        Drawing failures are logged and the input image is returned
        unchanged; missing outlines never block delivery.
        """
        if not boxes_by_label:
            return image

        color_map = self.colors if colors is None else colors
        try:
            frame = image.copy()
            for label, boxes in boxes_by_label.items():
                color = color_map.get(label, FALLBACK_COLOR)
                for rect in boxes:
                    self._draw_box(frame, label, rect, color)
            return frame
        except Exception as e:
            logging.warning(f"Annotation failed, delivering unannotated image: {e}")
            return image

    def _draw_box(self, frame: np.ndarray, label: str, rect: PixelRect, color: Color) -> None:
        x1, y1, x2, y2 = rect.as_tuple()
        cv2.rectangle(frame, (x1, y1), (x2 - 1, y2 - 1), color, self.line_width)

        if not self.draw_labels:
            return

        # Label with background, kept inside the image
        font = cv2.FONT_HERSHEY_SIMPLEX
        (tw, th), _ = cv2.getTextSize(label, font, 0.5, 1)
        top = max(y1 - th - 6, 0)
        cv2.rectangle(frame, (x1, top), (x1 + tw + 4, top + th + 6), color, -1)
        cv2.putText(frame, label, (x1 + 2, top + th + 2), font, 0.5, (255, 255, 255), 1)
