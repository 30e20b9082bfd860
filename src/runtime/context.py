from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from delivery.backlog import BacklogDrainer
from delivery.pipeline import DeliveryPipeline
from detection.classifier import ResultClassifier
from detection.detector import Detector
from detection.targets import TargetClassRegistry
from detection.thresholds import ThresholdStore
from imaging.annotator import Annotator
from imaging.redactor import Redactor
from location.provider import LocationProvider
from models.config import Config
from models.status import PipelineCounters


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    detector: Detector
    classifier: ResultClassifier
    redactor: Redactor
    annotator: Annotator
    delivery: DeliveryPipeline
    drainer: BacklogDrainer
    location: LocationProvider
    thresholds: ThresholdStore
    targets: TargetClassRegistry
    counters: PipelineCounters = field(default_factory=PipelineCounters)
    clock: Callable[[], float] = time.time
