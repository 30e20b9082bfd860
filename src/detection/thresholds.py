"""
Threshold store: per-class (IoU, confidence) settings read by the detector.

Readers always get an immutable snapshot; writers swap in a new snapshot
under a lock, so a reader never observes a half-applied edit.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from models.config import ClassThreshold, DEFAULT_CONFIDENCE, DEFAULT_IOU, TARGET_CLASSES
from models.detection import normalize_label

DEFAULT_THRESHOLD = ClassThreshold(iou=DEFAULT_IOU, confidence=DEFAULT_CONFIDENCE)

ThresholdMap = Mapping[str, ClassThreshold]


def _validate(label: str, threshold: ClassThreshold) -> None:
    for name, value in (("iou", threshold.iou), ("confidence", threshold.confidence)):
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} threshold for '{label}' must be between 0 and 1, got {value}")


class ThresholdStore:
    """
    Holds the current per-class thresholds.

    The snapshot is total over `known_classes`: any class without an explicit
    entry gets DEFAULT_THRESHOLD.
    """

    def __init__(
        self,
        thresholds: Optional[Mapping[str, ClassThreshold]] = None,
        known_classes: Iterable[str] = TARGET_CLASSES,
        default: ClassThreshold = DEFAULT_THRESHOLD,
    ):
        self._lock = threading.Lock()
        self._default = default
        self._known_classes = tuple(normalize_label(c) for c in known_classes)
        self._version = 0
        self._current = self._build(thresholds or {})

    def _build(self, thresholds: Mapping[str, ClassThreshold]) -> ThresholdMap:
        merged: Dict[str, ClassThreshold] = {name: self._default for name in self._known_classes}
        for label, threshold in thresholds.items():
            _validate(label, threshold)
            merged[normalize_label(label)] = threshold
        return MappingProxyType(merged)

    @property
    def version(self) -> int:
        """Incremented on every successful update."""
        with self._lock:
            return self._version

    @property
    def default(self) -> ClassThreshold:
        return self._default

    def get_current(self) -> ThresholdMap:
        """Return the current immutable snapshot."""
        with self._lock:
            return self._current

    def threshold_for(self, label: str) -> ClassThreshold:
        return self.get_current().get(normalize_label(label), self._default)

    def has_changed_since(
        self,
        previous: Optional[ThresholdMap],
        current: Optional[ThresholdMap] = None,
    ) -> bool:
        """
        True if any class differs in iou or confidence, or the class sets differ.

        `current` defaults to the store's latest snapshot.
        """
        if previous is None:
            return True
        if current is None:
            current = self.get_current()
        return dict(previous) != dict(current)

    def update(
        self,
        label: str,
        iou: Optional[float] = None,
        confidence: Optional[float] = None,
    ) -> ThresholdMap:
        """Change one class's thresholds; unspecified values are kept."""
        label = normalize_label(label)
        with self._lock:
            current = self._current.get(label, self._default)
            updated = ClassThreshold(
                iou=current.iou if iou is None else float(iou),
                confidence=current.confidence if confidence is None else float(confidence),
            )
            merged = dict(self._current)
            merged[label] = updated
            self._current = self._build(merged)
            self._version += 1
            snapshot = self._current
        logging.info(f"Threshold for '{label}' set to iou={updated.iou}, confidence={updated.confidence}")
        return snapshot

    def replace(self, thresholds: Mapping[str, ClassThreshold]) -> ThresholdMap:
        """Swap in a complete new threshold set (unlisted known classes get the default)."""
        snapshot = self._build(thresholds)
        with self._lock:
            self._current = snapshot
            self._version += 1
        logging.info(f"Thresholds replaced: {dict(snapshot)}")
        return snapshot
