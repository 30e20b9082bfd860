"""
Delivery module: packaging, upload with local fallback, and backlog draining.
"""

from .backlog import BacklogDrainer, DrainResult
from .fallback import FallbackStore
from .pipeline import DeliveryPipeline, create_upload_executor, encode_jpeg

__all__ = [
    'BacklogDrainer',
    'DrainResult',
    'FallbackStore',
    'DeliveryPipeline',
    'create_upload_executor',
    'encode_jpeg',
]
