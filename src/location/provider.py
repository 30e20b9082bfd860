"""
Location provider: keeps the most recent GPS fix.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from models.config import LocationConfig
from models.location import GpsFix


class LocationProvider:
    """
    Latest-fix holder.

    A positioning source pushes fixes with update(); the delivery pipeline
    reads last_fix() and never waits for a new one.
    """

    def __init__(self, initial: Optional[GpsFix] = None):
        self._lock = threading.Lock()
        self._fix = initial

    @classmethod
    def from_config(cls, config: LocationConfig) -> "LocationProvider":
        """Seed a fixed position for stationary installations."""
        if config.latitude is None or config.longitude is None:
            return cls()
        fix = GpsFix(
            latitude=float(config.latitude),
            longitude=float(config.longitude),
            accuracy=config.accuracy,
            timestamp=time.time(),
        )
        logging.info(f"Using fixed location ({fix.latitude}, {fix.longitude})")
        return cls(fix)

    def update(self, fix: GpsFix) -> None:
        with self._lock:
            self._fix = fix

    def clear(self) -> None:
        with self._lock:
            self._fix = None

    def last_fix(self) -> Optional[GpsFix]:
        with self._lock:
            return self._fix
