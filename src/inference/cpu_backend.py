"""
Ultralytics YOLO inference backend.

Ultralytics only accepts one global confidence and IoU threshold, so the
model is queried with the loosest values across all classes and the
per-class thresholds are applied afterwards (confidence filter, then NMS
per class with that class's IoU).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import cv2
import numpy as np

from models.config import ClassThreshold, DEFAULT_CONFIDENCE, DEFAULT_IOU
from models.detection import Detection, normalize_label
from models.errors import ModelLoadError

from .backend import InferenceBackend

_NMS_SCALE = 10000


@dataclass(frozen=True)
class CpuYoloConfig:
    model: str
    class_name_overrides: Optional[Dict[int, str]] = None
    default_threshold: ClassThreshold = ClassThreshold(iou=DEFAULT_IOU, confidence=DEFAULT_CONFIDENCE)


def _to_numpy(tensor) -> np.ndarray:
    return tensor.cpu().numpy() if hasattr(tensor, "cpu") else np.asarray(tensor)


class UltralyticsBackend(InferenceBackend):
    def __init__(self, cfg: CpuYoloConfig):
        self.cfg = cfg
        try:
            from ultralytics import YOLO  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ModelLoadError(
                "Ultralytics is not installed. Install with `pip install ultralytics`."
            ) from e

        try:
            self._model = YOLO(cfg.model)
        except Exception as e:
            raise ModelLoadError(f"Failed to load model '{cfg.model}': {e}") from e

        self._global_conf = cfg.default_threshold.confidence
        self._global_iou = cfg.default_threshold.iou
        logging.info(f"Loaded YOLO model: {cfg.model}")

    def configure(self, thresholds: Mapping[str, ClassThreshold]) -> None:
        values = list(thresholds.values()) or [self.cfg.default_threshold]
        self._global_conf = min(t.confidence for t in values + [self.cfg.default_threshold])
        self._global_iou = max(t.iou for t in values + [self.cfg.default_threshold])
        logging.info(
            f"YOLO backend reconfigured: conf>={self._global_conf}, iou<={self._global_iou}"
        )

    def _class_name(self, class_id: int, names: Mapping[int, str]) -> str:
        name = (
            (self.cfg.class_name_overrides or {}).get(class_id)
            or names.get(class_id)
            or str(class_id)
        )
        return normalize_label(name)

    def infer(self, image: np.ndarray, thresholds: Mapping[str, ClassThreshold]) -> List[Detection]:
        results = self._model.predict(
            source=image,
            conf=self._global_conf,
            iou=self._global_iou,
            verbose=False,
        )
        if not results:
            return []

        r0 = results[0]
        names = getattr(r0, "names", None) or {}
        boxes = getattr(r0, "boxes", None)
        if boxes is None:
            return []

        xyxyn = _to_numpy(boxes.xyxyn)
        conf = _to_numpy(boxes.conf)
        cls = _to_numpy(boxes.cls)

        # Group candidates by class after the per-class confidence filter
        by_label: Dict[str, List[tuple]] = {}
        for (x1, y1, x2, y2), c, k in zip(xyxyn, conf, cls):
            label = self._class_name(int(k), names)
            threshold = thresholds.get(label, self.cfg.default_threshold)
            if float(c) < threshold.confidence:
                continue
            by_label.setdefault(label, []).append((float(x1), float(y1), float(x2), float(y2), float(c)))

        out: List[Detection] = []
        for label, candidates in by_label.items():
            threshold = thresholds.get(label, self.cfg.default_threshold)
            for x1, y1, x2, y2, c in _per_class_nms(candidates, threshold):
                out.append(Detection.from_xyxyn(label, c, x1, y1, x2, y2))

        return out


def _per_class_nms(candidates: List[tuple], threshold: ClassThreshold) -> List[tuple]:
    """Non-maximum suppression for one class using that class's IoU."""
    if len(candidates) < 2:
        return candidates
    # NMSBoxes wants integer rects; normalized coords are scaled up first
    rects = [
        [int(x1 * _NMS_SCALE), int(y1 * _NMS_SCALE), int((x2 - x1) * _NMS_SCALE), int((y2 - y1) * _NMS_SCALE)]
        for x1, y1, x2, y2, _ in candidates
    ]
    scores = [c for *_, c in candidates]
    keep = cv2.dnn.NMSBoxes(rects, scores, threshold.confidence, threshold.iou)
    indices = np.asarray(keep).flatten().tolist() if len(keep) else []
    return [candidates[i] for i in sorted(indices)]
