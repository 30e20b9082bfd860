"""
Tests for the pipeline engine.
"""

import json
import threading
import time
from typing import Optional
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from models.config import Config
from models.detection import Detection
from models.errors import RedactionError
from models.frame import FrameData
from models.location import GpsFix
from observation.base import ObservationSource, ObservationConfig
from pipeline.engine import PipelineEngine, PipelineConfig, create_context, create_engine_from_config


class MockObservationSource(ObservationSource):
    """Mock source for testing."""

    def __init__(self, config: ObservationConfig = None, max_frames: int = 10, fail_open: bool = False):
        super().__init__(config or ObservationConfig(source_id="mock"))
        self._max_frames = max_frames
        self._fail_open = fail_open
        self._pos = 0
        self.closed = False

    def open(self) -> None:
        if self._fail_open:
            raise RuntimeError("no camera")
        self._is_open = True
        self._pos = 0
        self._frame_index = 0

    def read(self) -> Optional[FrameData]:
        if not self._is_open or self._pos >= self._max_frames:
            return None
        self._pos += 1
        self._frame_index += 1
        frame = np.full((480, 640, 3), 128, dtype=np.uint8)
        return FrameData.from_numpy(frame, timestamp=time.time(), frame_index=self._frame_index, source=self.source_id)

    def close(self) -> None:
        self._is_open = False
        self.closed = True


class MockBackend:
    """Backend returning a fixed set of detections."""

    def __init__(self, detections=None, error=None, block: threading.Event = None):
        self.detections = detections if detections is not None else []
        self.error = error
        self.block = block
        self.calls = 0

    def configure(self, thresholds):
        pass

    def infer(self, image, thresholds):
        self.calls += 1
        if self.block is not None:
            self.block.wait(5)
        if self.error is not None:
            raise self.error
        return list(self.detections)


CONTAINER = Detection.from_xyxyn("container", 0.9, 0.1, 0.1, 0.4, 0.4)
PERSON = Detection.from_xyxyn("person", 0.8, 0.5, 0.5, 0.6, 0.9)


def make_frame(index=1, timestamp=1715954589.123):
    return FrameData.from_numpy(np.full((480, 640, 3), 128, dtype=np.uint8), timestamp=timestamp, frame_index=index)


@pytest.fixture
def config(valid_config, fallback_dir):
    valid_config["delivery"]["fallback_dir"] = fallback_dir
    valid_config["backlog"] = {"interval_seconds": 60, "drain_on_start": False}
    return Config.from_dict(valid_config)


@pytest.fixture
def make_engine(config, uploader):
    engines = []

    def _make(backend=None, source=None, pipeline_config=None):
        ctx = create_context(config, backend=backend or MockBackend([CONTAINER, PERSON]), uploader=uploader)
        engine = PipelineEngine(source, ctx, pipeline_config)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.stop()


class TestPipelineConfig:
    def test_default_values(self):
        config = PipelineConfig()
        assert config.max_consecutive_failures == 10
        assert config.stats_log_interval == 60.0

    def test_custom_values(self):
        config = PipelineConfig(max_consecutive_failures=5, read_retry_delay=0.0)
        assert config.max_consecutive_failures == 5
        assert config.read_retry_delay == 0.0


class TestProcessFrame:
    def test_target_frame_is_delivered(self, make_engine, uploader):
        engine = make_engine()

        record = engine.process_frame(make_frame())

        assert record is not None
        assert set(uploader.blobs) == {record.image_blob_name, record.metadata_blob_name}
        counters = engine.ctx.counters.snapshot()
        assert counters["frames_processed"] == 1
        assert counters["objects_detected"] == 1
        assert counters["images_processed"] == 1
        assert counters["images_delivered"] == 1
        assert counters["metadata_delivered"] == 1

    def test_sensitive_region_is_black_before_delivery(self, make_engine, uploader):
        engine = make_engine()

        record = engine.process_frame(make_frame())

        image = cv2.imdecode(np.frombuffer(uploader.blobs[record.image_blob_name], np.uint8), cv2.IMREAD_COLOR)
        assert image.shape == (480, 640, 3)
        # person box: x 320..384, y 240..432 (JPEG leaves a little noise)
        assert image[245:425, 325:380].max() < 10
        # container box is outlined, its interior untouched
        assert abs(float(image[100:140, 140:180].mean()) - 128) < 5

    def test_metadata_lists_all_predictions(self, make_engine, uploader):
        engine = make_engine()

        record = engine.process_frame(make_frame())

        doc = json.loads(uploader.blobs[record.metadata_blob_name])
        assert [p["label"] for p in doc["predictions"]] == ["container", "person"]
        assert doc["image_timestamp"] == 1715954589.123

    def test_location_is_attached(self, make_engine, uploader):
        engine = make_engine()
        engine.ctx.location.update(GpsFix(latitude=52.1, longitude=5.1, accuracy=3.0, timestamp=1.0))

        record = engine.process_frame(make_frame())

        doc = json.loads(uploader.blobs[record.metadata_blob_name])
        assert (doc["latitude"], doc["longitude"], doc["gps_accuracy"]) == (52.1, 5.1, 3.0)

    def test_sensitive_only_frame_is_not_delivered(self, make_engine, uploader):
        engine = make_engine(backend=MockBackend([PERSON]))

        assert engine.process_frame(make_frame()) is None
        assert uploader.attempts == []
        assert engine.ctx.counters.get("frames_processed") == 1
        assert engine.ctx.counters.get("images_processed") == 0

    def test_disabled_target_is_not_delivered(self, make_engine, uploader):
        engine = make_engine()
        engine.ctx.targets.set_enabled("container", False)

        assert engine.process_frame(make_frame()) is None
        assert uploader.attempts == []

    def test_detection_error_skips_frame(self, make_engine, uploader):
        engine = make_engine(backend=MockBackend(error=RuntimeError("device lost")))

        assert engine.process_frame(make_frame()) is None
        assert uploader.attempts == []

    def test_redaction_failure_aborts_frame(self, make_engine, uploader):
        engine = make_engine()
        engine.ctx.redactor = MagicMock()
        engine.ctx.redactor.redact.side_effect = RedactionError("not covered")

        assert engine.process_frame(make_frame()) is None

        assert uploader.attempts == []
        assert engine.ctx.delivery.store.count() == 0
        assert engine.ctx.counters.get("frames_redaction_aborted") == 1
        assert engine.ctx.counters.get("images_processed") == 0

    def test_upload_failure_goes_to_fallback(self, make_engine, uploader):
        uploader.fail = True
        engine = make_engine()

        record = engine.process_frame(make_frame())

        assert engine.ctx.delivery.store.list_pending() == [record.image_blob_name, record.metadata_blob_name]
        assert engine.ctx.counters.get("images_delivered") == 0

    def test_threshold_change_applies_to_next_frame(self, make_engine, uploader):
        engine = make_engine()
        engine.ctx.thresholds.update("container", confidence=0.95)

        assert engine.process_frame(make_frame()) is None


class TestFrameAdmission:
    def test_frames_dropped_while_busy(self, make_engine):
        block = threading.Event()
        engine = make_engine(backend=MockBackend([CONTAINER], block=block))

        assert engine.on_frame(make_frame(1)) is True
        assert engine.on_frame(make_frame(2)) is False
        block.set()
        assert engine.gate.wait_idle(5)
        assert engine.on_frame(make_frame(3)) is True
        engine.gate.wait_idle(5)

        counters = engine.ctx.counters.snapshot()
        assert counters["frames_submitted"] == 2
        assert counters["frames_dropped"] == 1
        assert counters["frames_processed"] == 2

    def test_no_frames_after_stop(self, make_engine):
        engine = make_engine()
        engine.stop()

        assert engine.on_frame(make_frame()) is False


class TestLifecycle:
    def test_run_until_source_exhausted(self, make_engine):
        source = MockObservationSource(max_frames=20)
        engine = make_engine(source=source, pipeline_config=PipelineConfig(max_consecutive_failures=1))

        assert engine.setup() is True
        engine.run()

        counters = engine.ctx.counters.snapshot()
        assert counters["frames_submitted"] + counters["frames_dropped"] == 20
        assert counters["frames_processed"] == counters["frames_submitted"]
        assert counters["images_processed"] == counters["frames_processed"]
        assert counters["frames_submitted"] >= 1
        assert source.closed is True
        assert engine.is_running is False

    def test_setup_failure(self, make_engine):
        engine = make_engine(source=MockObservationSource(fail_open=True))

        assert engine.setup() is False
        assert engine.is_configured is False
        assert engine.start() is False

    def test_start_and_stop(self, make_engine):
        source = MockObservationSource(max_frames=5)
        engine = make_engine(
            source=source,
            pipeline_config=PipelineConfig(max_consecutive_failures=1000, read_retry_delay=0.01),
        )

        assert engine.start() is True
        assert engine.ctx.drainer.is_running is True
        engine.stop()
        engine.stop()

        assert engine.ctx.drainer.is_running is False
        assert engine.gate.is_closed is True
        assert source.closed is True
        assert engine.start() is False

    def test_background_loop_stops_components_on_exhaustion(self, make_engine):
        source = MockObservationSource(max_frames=3)
        engine = make_engine(source=source, pipeline_config=PipelineConfig(max_consecutive_failures=1))

        assert engine.start() is True

        deadline = time.time() + 5
        while time.time() < deadline and not source.closed:
            time.sleep(0.01)

        assert source.closed is True
        assert engine.is_running is False
        assert engine.ctx.drainer.is_running is False
        assert engine.gate.is_closed is True
        assert engine.on_frame(make_frame()) is False

    def test_status(self, make_engine):
        now = [1000.0]
        engine = make_engine(source=MockObservationSource(max_frames=0),
                             pipeline_config=PipelineConfig(max_consecutive_failures=1))
        engine.ctx.clock = lambda: now[0]
        engine.ctx.delivery.store.save("detection_x.jpg", b"x")

        assert engine.status().minutes_running == 0
        engine.start()
        now[0] += 125
        status = engine.status()

        assert status.is_configured is True
        assert status.minutes_running == 2
        assert status.pending_backlog == 1
        assert set(status.counters) >= {"frames_processed", "images_delivered"}


class TestFactories:
    def test_context_thresholds_cover_targets_and_sensitive(self, config):
        ctx = create_context(config, backend=MockBackend(), uploader=MagicMock())

        assert set(ctx.thresholds.get_current()) == {
            "container", "mobile toilet", "scaffolding", "person", "license plate",
        }
        assert ctx.delivery.store.directory == config.delivery.fallback_dir

    def test_create_engine_from_dict(self, valid_config, fallback_dir, uploader):
        valid_config["delivery"]["fallback_dir"] = fallback_dir
        source = MockObservationSource()

        engine = create_engine_from_config(valid_config, backend=MockBackend(), uploader=uploader, source=source)

        assert engine.source is source
        assert engine.ctx.config.delivery.jpeg_quality == 50
        engine.stop()
