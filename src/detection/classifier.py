"""
Result classifier: splits detections into target, sensitive and ignored sets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from models.config import SENSITIVE_CLASSES, TargetClassConfig
from models.detection import Detection, PixelRect, normalize_label


@dataclass
class ClassificationResult:
    """
    Outcome of classifying one frame's detections.

    Attributes:
        target_boxes: Pixel rectangles per enabled target label.
        sensitive_boxes: Pixel rectangles to redact.
        should_process: True iff at least one enabled target was detected.
    """
    target_boxes: Dict[str, List[PixelRect]] = field(default_factory=dict)
    sensitive_boxes: List[PixelRect] = field(default_factory=list)
    should_process: bool = False

    @property
    def target_count(self) -> int:
        return sum(len(boxes) for boxes in self.target_boxes.values())


class ResultClassifier:
    """
    Partitions detections by label.

    Sensitive classes are fixed and independent of target enablement;
    detections whose label is neither an enabled target nor sensitive
    are dropped.
    """

    def __init__(self, sensitive_classes: Iterable[str] = SENSITIVE_CLASSES):
        self.sensitive_classes = frozenset(normalize_label(c) for c in sensitive_classes)

    def classify(
        self,
        detections: Iterable[Detection],
        targets: Iterable[TargetClassConfig],
        image_size: Tuple[int, int],
    ) -> ClassificationResult:
        width, height = image_size
        enabled = {normalize_label(t.name) for t in targets if t.enabled}
        result = ClassificationResult()

        for det in detections:
            label = normalize_label(det.label)
            if label in enabled:
                rect = det.box.to_pixel_rect(width, height)
                result.target_boxes.setdefault(label, []).append(rect)
            elif label in self.sensitive_classes:
                rect = det.box.to_pixel_rect(width, height)
                if not rect.is_empty:
                    result.sensitive_boxes.append(rect)

        result.should_process = result.target_count > 0
        return result
