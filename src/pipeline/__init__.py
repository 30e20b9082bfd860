"""
Pipeline module for the detection and delivery system.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Single-slot admission (FrameGate)
- Detection, classification, redaction and annotation
- Delivery with local fallback
"""

from .engine import PipelineEngine, PipelineConfig, create_context, create_engine_from_config
from .gate import FrameGate

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "create_context",
    "create_engine_from_config",
    "FrameGate",
]
