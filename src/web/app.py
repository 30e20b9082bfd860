"""
FastAPI application factory for the detection pipeline.

Routes:
- /api/status -> pipeline health and counters
- /api/thresholds, /api/targets -> runtime detection settings
- /api/drain -> manual backlog upload
"""

from __future__ import annotations

from fastapi import FastAPI

from pipeline.engine import PipelineEngine

from .routes import api


def create_app(engine: PipelineEngine) -> FastAPI:
    """Create the FastAPI app bound to a running engine."""
    app = FastAPI(
        title="Detection Pipeline",
        version="0.1.0",
        description="Object detection with privacy redaction and cloud delivery",
    )
    app.state.engine = engine

    app.include_router(api.router, prefix="/api")

    return app
