"""
Backlog drainer: re-uploads blobs that were saved to the fallback directory.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from cloud.uploader import BlobUploader
from models.record import IMAGE_SUFFIX, METADATA_SUFFIX
from models.status import PipelineCounters

from .fallback import FallbackStore


@dataclass(frozen=True)
class DrainResult:
    """Outcome of one drain pass."""
    attempted: int = 0
    delivered: int = 0
    failed: int = 0


def counter_for(blob_name: str) -> Optional[str]:
    """Delivered counter for a pending file, by suffix."""
    if blob_name.endswith(IMAGE_SUFFIX):
        return "images_delivered"
    if blob_name.endswith(METADATA_SUFFIX):
        return "metadata_delivered"
    return None


class BacklogDrainer:
    """
    Uploads pending files and deletes each local copy only after its upload
    succeeded. Failed files stay for the next pass.
    """

    def __init__(
        self,
        uploader: BlobUploader,
        store: FallbackStore,
        counters: PipelineCounters,
        interval_seconds: float = 300.0,
        drain_on_start: bool = True,
    ):
        self.uploader = uploader
        self.store = store
        self.counters = counters
        self.interval_seconds = interval_seconds
        self.drain_on_start = drain_on_start
        self._drain_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def drain(self) -> DrainResult:
        """
        Run one pass over the fallback directory.

        Only one pass runs at a time; a call that overlaps a running pass
        returns an empty result immediately.
        """
        if not self._drain_lock.acquire(blocking=False):
            logging.info("Backlog drain already in progress, skipping")
            return DrainResult()
        try:
            return self._drain_pending()
        finally:
            self._drain_lock.release()

    def _drain_pending(self) -> DrainResult:
        pending = self.store.list_pending()
        if not pending:
            return DrainResult()

        logging.info(f"Draining backlog: {len(pending)} pending file(s)")
        attempted = delivered = failed = 0

        for name in pending:
            data = self.store.read(name)
            if data is None:
                continue
            attempted += 1
            try:
                self.uploader.upload(data, name)
            except Exception as e:
                failed += 1
                logging.warning(f"Backlog upload of {name} failed: {e}")
                continue

            self.store.remove(name)
            delivered += 1
            counter = counter_for(name)
            if counter is not None:
                self.counters.increment(counter)

        logging.info(f"Backlog drain finished: delivered={delivered}, failed={failed}")
        return DrainResult(attempted=attempted, delivered=delivered, failed=failed)

    def pending_count(self) -> int:
        return self.store.count()

    def start(self) -> bool:
        """Start the periodic drain thread. Returns False if it is already running."""
        if self._thread is not None and self._thread.is_alive():
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._drain_worker, name="backlog-drainer")
        self._thread.daemon = True
        self._thread.start()
        logging.info(f"Backlog drainer started (interval={self.interval_seconds}s)")
        return True

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the periodic drain thread."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            logging.info("Backlog drainer stopped")
        self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _drain_worker(self) -> None:
        """Background worker for periodic draining."""
        if self.drain_on_start:
            self._safe_drain()
        while not self._stop_event.wait(self.interval_seconds):
            self._safe_drain()

    def _safe_drain(self) -> None:
        try:
            self.drain()
        except Exception as e:
            logging.error(f"Error in backlog drainer: {e}")
