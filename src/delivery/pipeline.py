"""
Delivery pipeline: packages an image with its metadata and uploads both,
falling back to durable local storage per blob.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, Sequence, Set

import cv2
import numpy as np

from cloud.uploader import BlobUploader
from models.detection import Detection
from models.location import GpsFix
from models.record import DeliveryRecord, blob_base_name, build_metadata, format_capture_time
from models.status import PipelineCounters

from .fallback import FallbackStore


def encode_jpeg(image: np.ndarray, quality: int = 50) -> Optional[bytes]:
    """JPEG-encode an image; None if encoding fails."""
    try:
        ok, buf = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    except cv2.error as e:
        logging.error(f"JPEG encoding failed: {e}")
        return None
    if not ok:
        logging.error("JPEG encoding failed")
        return None
    return buf.tobytes()


class DeliveryPipeline:
    """
    Fire-and-forget delivery of one record per processed frame.

    The image and metadata blobs are sent independently; whichever fails
    is written to the fallback store under its blob name and picked up
    later by the backlog drainer.
    """

    def __init__(
        self,
        uploader: BlobUploader,
        store: FallbackStore,
        counters: PipelineCounters,
        jpeg_quality: int = 50,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the delivery pipeline.

        Args:
            uploader: Blob uploader.
            store: Fallback store for failed blobs.
            counters: Shared pipeline counters.
            jpeg_quality: JPEG quality (0-100).
            executor: Runs upload jobs off the caller's thread; uploads run inline when None.
            clock: Time source used when no capture timestamp is given.
        """
        self.uploader = uploader
        self.store = store
        self.counters = counters
        self.jpeg_quality = jpeg_quality
        self.clock = clock
        self._executor = executor
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    def package(
        self,
        image: np.ndarray,
        detections: Sequence[Detection],
        gps: Optional[GpsFix] = None,
        captured_at: Optional[float] = None,
    ) -> DeliveryRecord:
        """Encode the image and build its metadata document."""
        timestamp = captured_at if captured_at is not None else self.clock()
        metadata = build_metadata(
            date=format_capture_time(timestamp),
            detections=detections,
            gps=gps,
            image_timestamp=captured_at,
        )
        image_bytes = encode_jpeg(image, self.jpeg_quality) or b""
        return DeliveryRecord(base_name=blob_base_name(timestamp), image=image_bytes, metadata=metadata)

    def deliver(
        self,
        image: np.ndarray,
        detections: Sequence[Detection],
        gps: Optional[GpsFix] = None,
        captured_at: Optional[float] = None,
    ) -> DeliveryRecord:
        """
        Package and send one record.

        Returns the packaged record; upload outcomes are reflected in the
        counters and the fallback store.
        """
        record = self.package(image, detections, gps=gps, captured_at=captured_at)
        # Counted once packaged, whatever the upload outcome
        self.counters.increment("images_processed")
        logging.info(f"Delivering {record.base_name} ({len(detections)} predictions)")

        if record.image:
            self._submit(record.image, record.image_blob_name, "images_delivered")
        else:
            logging.error(f"No image data for {record.base_name}, sending metadata only")
        self._submit(record.metadata_bytes(), record.metadata_blob_name, "metadata_delivered")
        return record

    def _submit(self, data: bytes, blob_name: str, counter: str) -> None:
        if self._executor is None:
            self._send(data, blob_name, counter)
            return

        future = self._executor.submit(self._send, data, blob_name, counter)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def _discard(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _send(self, data: bytes, blob_name: str, counter: str) -> bool:
        try:
            self.uploader.upload(data, blob_name)
        except Exception as e:
            logging.warning(f"Upload of {blob_name} failed: {e}")
            self._save_locally(data, blob_name)
            return False

        self.counters.increment(counter)
        logging.info(f"Delivered {blob_name}")
        return True

    def _save_locally(self, data: bytes, blob_name: str) -> None:
        try:
            path = self.store.save(blob_name, data)
            logging.info(f"Saved {blob_name} at {path}")
        except OSError as e:
            logging.error(f"Error saving {blob_name} locally: {e}")

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for pending upload jobs."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush pending uploads and shut down the upload executor."""
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)


def create_upload_executor(workers: int) -> Optional[ThreadPoolExecutor]:
    """Upload executor for the given worker count; 0 means inline uploads."""
    if workers <= 0:
        return None
    return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upload")
