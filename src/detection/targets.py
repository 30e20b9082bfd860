"""
Registry of target classes and their enable flags.
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Tuple

from models.config import TARGET_CLASSES, TargetClassConfig
from models.detection import normalize_label


class TargetClassRegistry:
    """Immutable tuple of TargetClassConfig, replaced atomically on change."""

    def __init__(self, targets: Optional[Iterable[TargetClassConfig]] = None):
        self._lock = threading.Lock()
        if targets is None:
            targets = [TargetClassConfig(name, True) for name in TARGET_CLASSES]
        self._targets: Tuple[TargetClassConfig, ...] = tuple(
            TargetClassConfig(normalize_label(t.name), bool(t.enabled)) for t in targets
        )

    def snapshot(self) -> Tuple[TargetClassConfig, ...]:
        with self._lock:
            return self._targets

    def enabled_labels(self) -> frozenset:
        return frozenset(t.name for t in self.snapshot() if t.enabled)

    def set_enabled(self, name: str, enabled: bool) -> Tuple[TargetClassConfig, ...]:
        """Enable or disable one target class. Unknown names are added."""
        name = normalize_label(name)
        with self._lock:
            targets = [t for t in self._targets if t.name != name]
            position = next((i for i, t in enumerate(self._targets) if t.name == name), len(targets))
            targets.insert(position, TargetClassConfig(name, bool(enabled)))
            self._targets = tuple(targets)
            snapshot = self._targets
        logging.info(f"Target class '{name}' {'enabled' if enabled else 'disabled'}")
        return snapshot
