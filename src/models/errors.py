"""
Exception hierarchy for the detection-to-delivery pipeline.
"""


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigError(PipelineError):
    """Invalid or incomplete configuration."""


class ModelLoadError(PipelineError):
    """The inference model could not be loaded (startup fatal)."""


class DetectionError(PipelineError):
    """Inference failed for a single frame."""


class RedactionError(PipelineError):
    """Redaction could not be applied or verified; the frame must not leave the device."""


class UploadError(PipelineError):
    """A blob could not be delivered to the cloud store."""
