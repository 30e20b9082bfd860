"""
Frame gate: admits at most one frame into the processing stage at a time.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from models.frame import FrameData
from models.status import PipelineCounters


class FrameGate:
    """
    Single-slot admission control in front of the inference worker.

    submit() never blocks and never queues: a frame arriving while another
    is in flight is dropped. The slot is released after the handler
    returns, whether it succeeded or raised.

    Example:
        gate = FrameGate(engine.process_frame, counters)
        accepted = gate.submit(frame_data)
    """

    def __init__(
        self,
        handler: Callable[[FrameData], Any],
        counters: Optional[PipelineCounters] = None,
    ):
        self._handler = handler
        self._counters = counters
        self._cond = threading.Condition()
        self._busy = False
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")

    @property
    def in_flight(self) -> bool:
        with self._cond:
            return self._busy

    @property
    def is_closed(self) -> bool:
        with self._cond:
            return self._closed

    def submit(self, frame: FrameData) -> bool:
        """
        Offer a frame.

        Returns:
            True if the frame was taken for processing, False if it was
            dropped (a frame is in flight or the gate is closed).
        """
        with self._cond:
            if self._closed:
                return False
            if self._busy:
                self._count("frames_dropped")
                return False
            self._busy = True

        try:
            self._executor.submit(self._run, frame)
        except RuntimeError:
            # Executor shut down between the check and the submit
            self._release()
            return False

        self._count("frames_submitted")
        return True

    def _run(self, frame: FrameData) -> None:
        try:
            self._handler(frame)
        except Exception as e:
            logging.error(f"Error processing frame {frame.frame_index}: {e}")
        finally:
            self._release()

    def _release(self) -> None:
        with self._cond:
            self._busy = False
            self._cond.notify_all()

    def _count(self, name: str) -> None:
        if self._counters is not None:
            self._counters.increment(name)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no frame is in flight. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._busy, timeout=timeout)

    def close(self, wait: bool = True) -> None:
        """Reject further frames and shut down the worker; an in-flight frame completes."""
        with self._cond:
            self._closed = True
        self._executor.shutdown(wait=wait)
