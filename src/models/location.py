"""
GPS fix model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class GpsFix:
    """
    Best-effort position reported by a location provider.

    Attributes:
        latitude: Degrees north.
        longitude: Degrees east.
        accuracy: Horizontal accuracy in metres, if known.
        timestamp: Unix timestamp of the fix, if known.
    """
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GpsFix":
        return cls(
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            accuracy=d.get("accuracy"),
            timestamp=d.get("timestamp"),
        )
