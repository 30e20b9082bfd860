"""
Detector: runs the inference backend with the current per-class thresholds.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from inference.backend import InferenceBackend
from models.detection import Detection, normalize_label
from models.errors import DetectionError
from models.frame import FrameData

from .thresholds import ThresholdMap, ThresholdStore


class Detector:
    """
    Wraps an inference backend.

    The backend is reconfigured only when the threshold snapshot differs
    from the one last applied; a snapshot is taken at the start of each call
    so edits never affect a call already in flight.
    """

    def __init__(self, backend: InferenceBackend, thresholds: ThresholdStore):
        self.backend = backend
        self.thresholds = thresholds
        self._applied: Optional[ThresholdMap] = None
        self.reconfigure_count = 0

    def _apply_if_changed(self, snapshot: ThresholdMap) -> None:
        if not self.thresholds.has_changed_since(self._applied, snapshot):
            return
        logging.info(f"Threshold changes detected. New thresholds: {dict(snapshot)}")
        self.backend.configure(snapshot)
        self._applied = snapshot
        self.reconfigure_count += 1

    def detect(self, frame: FrameData, thresholds: Optional[ThresholdMap] = None) -> List[Detection]:
        """
        Detect objects in a frame.

        Raises:
            DetectionError: If the backend fails.
        """
        snapshot = thresholds if thresholds is not None else self.thresholds.get_current()

        try:
            self._apply_if_changed(snapshot)
            raw = self.backend.infer(frame.frame, snapshot)
        except Exception as e:
            raise DetectionError(f"Inference failed on frame {frame.frame_index}: {e}") from e

        default = self.thresholds.default
        detections = [
            d for d in raw
            if d.confidence >= snapshot.get(normalize_label(d.label), default).confidence
        ]
        if len(detections) != len(raw):
            logging.debug(f"Dropped {len(raw) - len(detections)} detections below class threshold")
        return detections
