from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    """Pipeline health, polled by monitoring."""
    is_configured: bool = Field(..., description="Frame source opened successfully")
    is_running: bool = Field(..., description="Capture loop is active")
    minutes_running: int = Field(0, description="Whole minutes since start")
    pending_backlog: int = Field(0, description="Files waiting in the fallback directory")
    counters: Dict[str, int] = Field(default_factory=dict)
    timestamp: float


class ThresholdModel(BaseModel):
    iou: float = Field(..., ge=0.0, le=1.0)
    confidence: float = Field(..., ge=0.0, le=1.0)


class ThresholdUpdate(BaseModel):
    """Partial update; omitted values are kept."""
    iou: Optional[float] = Field(None, ge=0.0, le=1.0)
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class TargetModel(BaseModel):
    name: str
    enabled: bool


class TargetUpdate(BaseModel):
    enabled: bool


class DrainResponse(BaseModel):
    attempted: int
    delivered: int
    failed: int
    pending_backlog: int
