"""
Pipeline engine for the detection and delivery system.

This module owns the capture loop: frames from an ObservationSource are
offered to the FrameGate, and each admitted frame runs through detection,
classification, redaction, annotation and delivery.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from cloud.uploader import BlobUploader, create_uploader
from delivery.backlog import BacklogDrainer
from delivery.fallback import FallbackStore
from delivery.pipeline import DeliveryPipeline, create_upload_executor
from detection.classifier import ResultClassifier
from detection.detector import Detector
from detection.targets import TargetClassRegistry
from detection.thresholds import ThresholdStore
from imaging.annotator import Annotator
from imaging.redactor import Redactor
from inference.backend import InferenceBackend
from location.provider import LocationProvider
from models.config import SENSITIVE_CLASSES, Config
from models.errors import DetectionError, RedactionError
from models.frame import FrameData
from models.record import DeliveryRecord
from models.status import PipelineCounters, PipelineStatus
from observation import ObservationSource, create_source_from_config
from runtime.context import RuntimeContext

from .gate import FrameGate


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before the capture loop stops.
        stats_log_interval: Seconds between status log messages.
        read_retry_delay: Seconds to wait after a failed read.
    """
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    read_retry_delay: float = 0.5


@dataclass
class PipelineStats:
    """Runtime statistics for the capture loop."""
    start_time: Optional[float] = None
    last_stats_log_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0


class PipelineEngine:
    """
    Main processing engine.

    This engine:
    - Reads frames from any ObservationSource on a capture thread
    - Drops frames while one is in flight (FrameGate)
    - Detects, classifies, redacts and annotates admitted frames
    - Hands the result to the delivery pipeline
    - Keeps the backlog drainer running alongside

    Example:
        engine = create_engine_from_config(config)
        if engine.setup():
            engine.run()
    """

    def __init__(
        self,
        source: Optional[ObservationSource],
        ctx: RuntimeContext,
        config: Optional[PipelineConfig] = None,
    ):
        self.source = source
        self.ctx = ctx
        self.config = config or PipelineConfig()
        self.stats = PipelineStats()
        self.gate = FrameGate(self.process_frame, ctx.counters)
        self.is_configured = False
        self._running = False
        self._stopped = False
        self._capture_thread: Optional[threading.Thread] = None
        self._stop_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    def setup(self) -> bool:
        """
        Open the frame source.

        Returns:
            False if the source could not be opened; the pipeline must not start.
        """
        if self.source is None:
            logging.error("No frame source configured")
            return False
        try:
            self.source.open()
        except Exception as e:
            logging.error(f"Failed to open frame source: {e}")
            self.is_configured = False
            return False
        self.is_configured = True
        logging.info(f"Pipeline configured: source={self.source.source_id}")
        return True

    def _begin(self) -> bool:
        if self._stopped:
            logging.warning("Pipeline already stopped, cannot restart")
            return False
        if self._running:
            return False
        if not self.is_configured and not self.setup():
            return False
        self._running = True
        self.stats = PipelineStats(start_time=self.ctx.clock())
        self.ctx.drainer.start()
        logging.info("Pipeline started")
        return True

    def start(self) -> bool:
        """Start the capture loop on a background thread."""
        if not self._begin():
            return False
        self._capture_thread = threading.Thread(target=self._capture_loop, name="capture")
        self._capture_thread.daemon = True
        self._capture_thread.start()
        return True

    def run(self) -> None:
        """
        Run the capture loop in the calling thread until stopped, the source
        is exhausted or too many reads fail; then stop all components.
        """
        if not self._begin():
            return
        try:
            self._capture_loop()
        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        finally:
            self.stop()

    def _capture_loop(self) -> None:
        try:
            while self._running:
                frame_data = self.source.read()

                if frame_data is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    time.sleep(self.config.read_retry_delay)
                    continue

                self.stats.consecutive_failures = 0
                self.on_frame(frame_data)
                self._handle_periodic_tasks()
        except Exception as e:
            logging.error(f"Capture loop error: {e}")
        finally:
            self._running = False
            # Background loop: shut down everything stop() owns (no-op if already stopped)
            if self._capture_thread is threading.current_thread():
                self.stop()

    def on_frame(self, frame: FrameData) -> bool:
        """
        Offer a captured frame to the pipeline.

        Returns:
            True if the frame was admitted, False if it was dropped.
        """
        if self._stopped:
            return False
        return self.gate.submit(frame)

    def process_frame(self, frame: FrameData) -> Optional[DeliveryRecord]:
        """
        Detect, classify, redact, annotate and deliver one frame.

        Returns the delivered record, or None when the frame produced nothing
        to deliver or was aborted.
        """
        ctx = self.ctx
        ctx.counters.increment("frames_processed")

        try:
            detections = ctx.detector.detect(frame)
        except DetectionError as e:
            logging.warning(f"{e}")
            return None

        result = ctx.classifier.classify(detections, ctx.targets.snapshot(), frame.size)
        if not result.should_process:
            return None
        ctx.counters.increment("objects_detected", result.target_count)

        try:
            image = ctx.redactor.redact(frame.frame, result.sensitive_boxes)
        except RedactionError as e:
            ctx.counters.increment("frames_redaction_aborted")
            logging.error(f"Redaction failed, frame {frame.frame_index} not delivered: {e}")
            return None

        image = ctx.annotator.annotate(image, result.target_boxes)

        return ctx.delivery.deliver(
            image,
            detections,
            gps=ctx.location.last_fix(),
            captured_at=frame.timestamp,
        )

    def _handle_periodic_tasks(self) -> None:
        """Log statistics periodically."""
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            counters = self.ctx.counters.snapshot()
            logging.info(
                f"Pipeline stats: frames={counters['frames_processed']}, "
                f"dropped={counters['frames_dropped']}, "
                f"objects={counters['objects_detected']}, "
                f"images={counters['images_processed']}, "
                f"delivered={counters['images_delivered']}"
            )
            self.stats.last_stats_log_time = now

    def minutes_running(self) -> int:
        if self.stats.start_time is None:
            return 0
        return int((self.ctx.clock() - self.stats.start_time) // 60)

    def status(self) -> PipelineStatus:
        return PipelineStatus(
            is_configured=self.is_configured,
            is_running=self._running,
            minutes_running=self.minutes_running(),
            pending_backlog=self.ctx.drainer.pending_count(),
            counters=self.ctx.counters.snapshot(),
        )

    def stop(self) -> None:
        """
        Stop frame generation, let the in-flight frame finish, flush uploads
        and release the source. Safe to call more than once.
        """
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
        self._running = False

        if self._capture_thread is not None and self._capture_thread is not threading.current_thread():
            self._capture_thread.join(timeout=10)

        self.gate.close(wait=True)
        self.ctx.delivery.close()
        self.ctx.drainer.stop()

        if self.source is not None:
            try:
                self.source.close()
            except Exception as e:
                logging.warning(f"Error closing source: {e}")

        logging.info("Pipeline stopped")


def create_backend(config: Config, thresholds: ThresholdStore) -> InferenceBackend:
    """Load the inference backend for the `detection` section."""
    from inference.cpu_backend import CpuYoloConfig, UltralyticsBackend

    return UltralyticsBackend(
        CpuYoloConfig(
            model=config.detection.model,
            class_name_overrides=config.detection.class_name_overrides,
            default_threshold=thresholds.default,
        )
    )


def create_context(
    config: Config,
    backend: Optional[InferenceBackend] = None,
    uploader: Optional[BlobUploader] = None,
    counters: Optional[PipelineCounters] = None,
) -> RuntimeContext:
    """Wire all pipeline components from a typed config."""
    counters = counters or PipelineCounters()
    det = config.detection

    known_classes = list(det.target_classes) + sorted(SENSITIVE_CLASSES - set(det.target_classes))
    thresholds = ThresholdStore(det.class_thresholds, known_classes=known_classes)
    targets = TargetClassRegistry(det.target_configs())

    if backend is None:
        backend = create_backend(config, thresholds)
    if uploader is None:
        uploader = create_uploader(config.cloud)

    store = FallbackStore(config.delivery.fallback_dir)
    store.ensure_directory()

    delivery = DeliveryPipeline(
        uploader,
        store,
        counters,
        jpeg_quality=config.delivery.jpeg_quality,
        executor=create_upload_executor(config.delivery.upload_workers),
    )
    drainer = BacklogDrainer(
        uploader,
        store,
        counters,
        interval_seconds=config.backlog.interval_seconds,
        drain_on_start=config.backlog.drain_on_start,
    )

    return RuntimeContext(
        config=config,
        detector=Detector(backend, thresholds),
        classifier=ResultClassifier(),
        redactor=Redactor(mode=det.redaction_mode, blur_radius=det.blur_radius),
        annotator=Annotator(line_width=det.line_width, draw_labels=det.draw_labels),
        delivery=delivery,
        drainer=drainer,
        location=LocationProvider.from_config(config.location),
        thresholds=thresholds,
        targets=targets,
        counters=counters,
    )


def create_engine_from_config(
    config: Union[Config, Dict[str, Any]],
    backend: Optional[InferenceBackend] = None,
    uploader: Optional[BlobUploader] = None,
    source: Optional[ObservationSource] = None,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the application config.

    Args:
        config: Full application config (dict as loaded from YAML, or Config).
        backend: Inference backend; loaded from `detection.model` when omitted.
        uploader: Blob uploader; built from the `cloud` section when omitted.
        source: Frame source; built from the `camera` section when omitted.
    """
    if not isinstance(config, Config):
        config = Config.from_dict(config)

    ctx = create_context(config, backend=backend, uploader=uploader)
    if source is None:
        source = create_source_from_config(config.camera)

    return PipelineEngine(source, ctx, PipelineConfig())
