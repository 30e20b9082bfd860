from __future__ import annotations

import logging
import time
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from models.detection import normalize_label
from pipeline.engine import PipelineEngine

from ..api_models import (
    DrainResponse,
    StatusResponse,
    TargetModel,
    TargetUpdate,
    ThresholdModel,
    ThresholdUpdate,
)

router = APIRouter()


def get_engine(request: Request) -> PipelineEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return engine


@router.get("/status", response_model=StatusResponse)
def status(engine: PipelineEngine = Depends(get_engine)):
    """
    Pipeline status:
    - is_configured / is_running flags
    - minutes_running since start
    - pending_backlog: files waiting for upload
    - counters: frames, objects, images processed and delivered
    """
    snapshot = engine.status()
    return StatusResponse(**snapshot.to_dict(), timestamp=time.time())


@router.get("/thresholds", response_model=Dict[str, ThresholdModel])
def get_thresholds(engine: PipelineEngine = Depends(get_engine)):
    current = engine.ctx.thresholds.get_current()
    return {label: ThresholdModel(**t.to_dict()) for label, t in current.items()}


@router.put("/thresholds/{label}", response_model=ThresholdModel)
def put_threshold(label: str, body: ThresholdUpdate, engine: PipelineEngine = Depends(get_engine)):
    """Change one class's thresholds; applied from the next inference call."""
    if body.iou is None and body.confidence is None:
        raise HTTPException(status_code=400, detail="Provide iou and/or confidence")
    try:
        snapshot = engine.ctx.thresholds.update(label, iou=body.iou, confidence=body.confidence)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ThresholdModel(**snapshot[normalize_label(label)].to_dict())


@router.get("/targets", response_model=List[TargetModel])
def get_targets(engine: PipelineEngine = Depends(get_engine)):
    return [TargetModel(name=t.name, enabled=t.enabled) for t in engine.ctx.targets.snapshot()]


@router.put("/targets/{name}", response_model=List[TargetModel])
def put_target(name: str, body: TargetUpdate, engine: PipelineEngine = Depends(get_engine)):
    """Enable or disable a target class."""
    targets = engine.ctx.targets.set_enabled(name, body.enabled)
    return [TargetModel(name=t.name, enabled=t.enabled) for t in targets]


@router.post("/drain", response_model=DrainResponse)
def drain(engine: PipelineEngine = Depends(get_engine)):
    """Run one backlog pass now (returns an empty result if a pass is already running)."""
    drainer = engine.ctx.drainer
    result = drainer.drain()
    logging.info(f"Manual drain requested: delivered={result.delivered}, failed={result.failed}")
    return DrainResponse(
        attempted=result.attempted,
        delivered=result.delivered,
        failed=result.failed,
        pending_backlog=drainer.pending_count(),
    )
