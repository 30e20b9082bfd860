"""
Image processing stages: privacy redaction and detection annotation.
"""

from .redactor import Redactor
from .annotator import Annotator, DEFAULT_COLORS, FALLBACK_COLOR

__all__ = ["Redactor", "Annotator", "DEFAULT_COLORS", "FALLBACK_COLOR"]
