"""
Detection module: threshold store, target registry, detector and result classifier.
"""

from .thresholds import ThresholdStore, DEFAULT_THRESHOLD
from .targets import TargetClassRegistry
from .classifier import ResultClassifier, ClassificationResult, normalize_label
from .detector import Detector

__all__ = [
    'ThresholdStore',
    'DEFAULT_THRESHOLD',
    'TargetClassRegistry',
    'ResultClassifier',
    'ClassificationResult',
    'normalize_label',
    'Detector',
]
