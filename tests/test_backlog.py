"""
Tests for the backlog drainer.
"""

import threading
import time

import pytest

from delivery.backlog import BacklogDrainer, DrainResult, counter_for
from delivery.fallback import FallbackStore
from delivery.pipeline import DeliveryPipeline
from models.detection import Detection, NormalizedBox


def seed(store, count):
    names = []
    for i in range(count):
        base = f"detection_20240517_1403{i:02d}000"
        store.save(f"{base}.jpg", b"\xff\xd8jpeg")
        store.save(f"{base}.json", b"{}")
        names.extend([f"{base}.jpg", f"{base}.json"])
    return names


@pytest.fixture
def store(fallback_dir):
    return FallbackStore(fallback_dir)


def test_counter_for():
    assert counter_for("detection_1.jpg") == "images_delivered"
    assert counter_for("detection_1.json") == "metadata_delivered"
    assert counter_for("notes.txt") is None


class TestDrain:
    def test_failed_deliveries_drain_to_empty(self, failing_uploader, uploader, store, counters, gray_image):
        pipeline = DeliveryPipeline(failing_uploader, store, counters)
        detections = [Detection("container", 0.9, NormalizedBox(0.1, 0.1, 0.3, 0.3))]

        records = [
            pipeline.deliver(gray_image, detections, captured_at=1715954589.123 + i) for i in range(3)
        ]

        pending = store.list_pending()
        assert store.count() == 6
        for record in records:
            assert record.image_blob_name in pending
            assert record.metadata_blob_name in pending
        assert counters.get("images_delivered") == 0

        result = BacklogDrainer(uploader, store, counters).drain()

        assert result == DrainResult(attempted=6, delivered=6, failed=0)
        assert store.count() == 0
        assert counters.get("images_delivered") == 3
        assert counters.get("metadata_delivered") == 3
        assert counters.get("images_processed") == 3

    def test_drains_all_pairs(self, uploader, store, counters):
        names = seed(store, 3)
        drainer = BacklogDrainer(uploader, store, counters)

        result = drainer.drain()

        assert result == DrainResult(attempted=6, delivered=6, failed=0)
        assert set(uploader.blobs) == set(names)
        assert store.count() == 0
        assert counters.get("images_delivered") == 3
        assert counters.get("metadata_delivered") == 3

    def test_uploaded_bytes_match_files(self, uploader, store, counters):
        store.save("detection_a.json", b'{"date": "a"}')

        BacklogDrainer(uploader, store, counters).drain()

        assert uploader.blobs["detection_a.json"] == b'{"date": "a"}'

    def test_failed_files_stay(self, failing_uploader, store, counters):
        names = seed(store, 2)
        drainer = BacklogDrainer(failing_uploader, store, counters)

        result = drainer.drain()

        assert result == DrainResult(attempted=4, delivered=0, failed=4)
        assert store.list_pending() == sorted(names)
        assert counters.get("images_delivered") == 0

    def test_partial_failure(self, uploader, store, counters):
        seed(store, 2)
        uploader.fail_names.add("detection_20240517_140301000.json")

        result = BacklogDrainer(uploader, store, counters).drain()

        assert result.delivered == 3
        assert store.list_pending() == ["detection_20240517_140301000.json"]
        assert counters.get("images_delivered") == 2
        assert counters.get("metadata_delivered") == 1

    def test_retry_after_recovery(self, uploader, store, counters):
        seed(store, 1)
        drainer = BacklogDrainer(uploader, store, counters)

        uploader.fail = True
        drainer.drain()
        uploader.fail = False
        drainer.drain()

        assert store.count() == 0
        assert counters.get("images_delivered") == 1

    def test_empty_backlog(self, uploader, store, counters):
        assert BacklogDrainer(uploader, store, counters).drain() == DrainResult()
        assert uploader.attempts == []

    def test_vanished_file_is_skipped(self, uploader, store, counters):
        seed(store, 1)
        drainer = BacklogDrainer(uploader, store, counters)
        real_read = store.read

        def read(name):
            if name.endswith(".jpg"):
                store.remove(name)
            return real_read(name)

        store.read = read
        result = drainer.drain()

        assert result.attempted == 1
        assert counters.get("images_delivered") == 0
        assert counters.get("metadata_delivered") == 1

    def test_overlapping_drain_returns_empty(self, store, counters):
        seed(store, 1)
        entered = threading.Event()
        release = threading.Event()

        class BlockingUploader:
            def __init__(self):
                self.calls = 0

            def upload(self, data, blob_name):
                self.calls += 1
                entered.set()
                release.wait(5)

        blocking = BlockingUploader()
        drainer = BacklogDrainer(blocking, store, counters)
        results = []
        worker = threading.Thread(target=lambda: results.append(drainer.drain()))
        worker.start()
        assert entered.wait(5)

        overlapping = drainer.drain()

        release.set()
        worker.join(5)
        assert overlapping == DrainResult()
        assert results[0].delivered == 2
        assert blocking.calls == 2


class TestDrainerThread:
    def test_drains_on_start(self, uploader, store, counters):
        seed(store, 2)
        drainer = BacklogDrainer(uploader, store, counters, interval_seconds=60)

        assert drainer.start() is True
        deadline = time.time() + 5
        while store.count() and time.time() < deadline:
            time.sleep(0.01)
        drainer.stop()

        assert store.count() == 0
        assert drainer.is_running is False

    def test_periodic_drain(self, uploader, store, counters):
        drainer = BacklogDrainer(uploader, store, counters, interval_seconds=0.05, drain_on_start=False)
        drainer.start()
        seed(store, 1)

        deadline = time.time() + 5
        while store.count() and time.time() < deadline:
            time.sleep(0.01)
        drainer.stop()

        assert counters.get("images_delivered") == 1

    def test_start_twice(self, uploader, store, counters):
        drainer = BacklogDrainer(uploader, store, counters, interval_seconds=60, drain_on_start=False)

        assert drainer.start() is True
        assert drainer.start() is False
        drainer.stop()

    def test_pending_count(self, uploader, store, counters):
        seed(store, 2)
        assert BacklogDrainer(uploader, store, counters).pending_count() == 4
