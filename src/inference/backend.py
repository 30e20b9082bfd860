"""
Inference backend interface.

Backends return detections with normalized, top-left-origin boxes.
"""

from __future__ import annotations

from typing import List, Mapping, Protocol

import numpy as np

from models.config import ClassThreshold
from models.detection import Detection


class InferenceBackend(Protocol):
    def configure(self, thresholds: Mapping[str, ClassThreshold]) -> None:
        """Apply a new threshold set; called only when the thresholds changed."""
        ...

    def infer(self, image: np.ndarray, thresholds: Mapping[str, ClassThreshold]) -> List[Detection]:
        ...
