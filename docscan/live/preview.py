# docscan/live/preview.py
"""
Reference live-preview loop: keep only the newest camera frame, run boundary
detection on it at most once per interval, and let the UI pull the newest
result.

    handle = init_pipeline()
    with PreviewWorker(handle) as worker:
        for frame in camera:                 # camera thread
            worker.submit(frame)
        ...
        result = worker.results.take(timeout=0)   # UI thread, may be None

Frames are handed over by reference; the camera must not write into a frame
after submitting it.
"""

from __future__ import annotations
from typing import Callable, Generic, Optional, TypeVar
import logging
import threading
import time

from docscan.core.contracts import NOT_FOUND, DetectionParams, DetectionResult
from docscan.core.pipeline import PipelineHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MIN_INTERVAL = 0.1  # seconds between detections


class LatestFrameSlot(Generic[T]):
    """One-item mailbox. put() replaces anything not yet taken."""

    def __init__(self):
        self._cond = threading.Condition()
        self._item: Optional[T] = None
        self._full = False
        self._closed = False
        self.dropped = 0

    def put(self, item: T) -> None:
        with self._cond:
            if self._full:
                self.dropped += 1
            self._item = item
            self._full = True
            self._cond.notify_all()

    def take(self, timeout: Optional[float] = None) -> Optional[T]:
        """Newest item, or None on timeout / after close()."""
        with self._cond:
            self._cond.wait_for(lambda: self._full or self._closed, timeout)
            if not self._full:
                return None
            item, self._item, self._full = self._item, None, False
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class FrameThrottle:
    """Admit at most one frame per min_interval seconds."""

    def __init__(self, min_interval: float = DEFAULT_MIN_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = float(min_interval)
        self._clock = clock
        self._last: Optional[float] = None

    def wait_time(self) -> float:
        if self._last is None:
            return 0.0
        return max(0.0, self._last + self.min_interval - self._clock())

    def mark(self) -> None:
        """Start a new interval now, whatever the time since the last one."""
        self._last = self._clock()

    def admit(self) -> bool:
        """Mark a detection as started now, unless it is too soon."""
        if self.wait_time() > 0.0:
            return False
        self.mark()
        return True


class PreviewWorker:
    """Background thread running handle.detect on the latest submitted frame."""

    def __init__(self, handle: PipelineHandle, params: Optional[DetectionParams] = None,
                 min_interval: float = DEFAULT_MIN_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self._handle = handle
        self._params = params or handle.config.preview
        self.throttle = FrameThrottle(min_interval, clock=clock)
        self._frames: LatestFrameSlot = LatestFrameSlot()
        self.results: LatestFrameSlot[DetectionResult] = LatestFrameSlot()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.processed = 0

    @property
    def dropped(self) -> int:
        return self._frames.dropped

    def submit(self, frame) -> None:
        self._frames.put(frame)

    def start(self) -> "PreviewWorker":
        if self._thread is not None:
            raise RuntimeError("preview worker already started")
        self._thread = threading.Thread(target=self._run, name="docscan-preview", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        self._stop.set()
        self._frames.close()
        if self._thread is not None:
            self._thread.join(timeout)
        self.results.close()

    def __enter__(self) -> "PreviewWorker":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def _run(self) -> None:
        while not self._stop.is_set():
            frame = self._frames.take(timeout=0.05)
            if frame is None:
                continue
            wait = self.throttle.wait_time()
            if wait > 0.0:
                if self._stop.wait(wait):
                    break
                newer = self._frames.take(timeout=0)
                if newer is not None:
                    frame = newer
            # Event.wait may return slightly early; the interval restarts here regardless
            self.throttle.mark()
            try:
                result = self._handle.detect(frame, self._params)
            except Exception:
                logger.exception("[preview] detection crashed; reporting no document")
                result = NOT_FOUND
            self.processed += 1
            self.results.put(result)
        logger.debug("[preview] stopped after %d frames (%d dropped)", self.processed, self.dropped)
