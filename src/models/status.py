"""
Pipeline counters and status models.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict


COUNTER_NAMES = (
    "frames_submitted",
    "frames_dropped",
    "frames_processed",
    "frames_redaction_aborted",
    "objects_detected",
    "images_processed",
    "images_delivered",
    "metadata_delivered",
)


class PipelineCounters:
    """
    Thread-safe counters shared by the pipeline stages.

    Writers call increment(); readers (status API, periodic log) take a
    consistent copy with snapshot().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._values: Dict[str, int] = {name: 0 for name in COUNTER_NAMES}

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in self._values:
            raise KeyError(f"Unknown counter: {name}")
        with self._lock:
            self._values[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._values[name]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._values)


@dataclass
class PipelineStatus:
    """
    Externally observable health of the pipeline.

    Attributes:
        is_configured: Frame source opened successfully.
        is_running: Capture loop is active.
        minutes_running: Whole minutes since start().
        pending_backlog: Files waiting in the fallback directory.
        counters: Counter snapshot.
    """
    is_configured: bool = False
    is_running: bool = False
    minutes_running: int = 0
    pending_backlog: int = 0
    counters: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_configured": self.is_configured,
            "is_running": self.is_running,
            "minutes_running": self.minutes_running,
            "pending_backlog": self.pending_backlog,
            "counters": dict(self.counters),
        }
