"""
Pipeline entry points used by the UI layer.

init_pipeline() checks once whether the OpenCV primitives work and returns
an immutable PipelineHandle. A degraded handle answers every call with
NOT_FOUND / DecodeFailure instead of touching the backend again.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Optional, Union
import logging
import numpy as np

from docscan.core.config import ScanConfig
from docscan.core.contracts import (
    NOT_FOUND,
    DecodeFailure,
    DetectionParams,
    DetectionResult,
    NotFound,
    Quadrilateral,
)

logger = logging.getLogger(__name__)

FALLBACK_PASSTHROUGH = "passthrough"
FALLBACK_REJECT = "reject"


def probe_backend() -> None:
    """Run a tiny blur/Canny/contour round to prove cv2 is importable and working."""
    import cv2

    img = np.zeros((32, 32), np.uint8)
    cv2.rectangle(img, (8, 8), (23, 23), 255, -1)
    edges = cv2.Canny(cv2.GaussianBlur(img, (3, 3), 0), 50, 150)
    found = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    cnts = found[0] if len(found) == 2 else found[1]
    if not cnts:
        raise RuntimeError("contour extraction returned nothing for the probe image")


@dataclass(frozen=True)
class PipelineHandle:
    available: bool
    reason: Optional[str] = None
    config: ScanConfig = field(default_factory=ScanConfig)

    def _unavailable(self) -> str:
        return f"vision backend unavailable: {self.reason}"

    def decode(self, data, width: Optional[int] = None, height: Optional[int] = None):
        """Encoded bytes / arrays, or raw NV21 when width and height are given."""
        if not self.available:
            return DecodeFailure(self._unavailable())
        from docscan.io.ingest import decode_frame, decode_nv21

        if width is not None or height is not None:
            if width is None or height is None:
                return DecodeFailure("NV21 decoding needs both width and height")
            return decode_nv21(data, width, height)
        return decode_frame(data)

    def detect(self, image: np.ndarray, params: Optional[DetectionParams] = None) -> DetectionResult:
        """Live-preview detection; params default to the configured preview preset."""
        if not self.available:
            return NOT_FOUND
        import cv2
        from docscan.geometry.detect import detect

        try:
            return detect(image, params or self.config.preview)
        except cv2.error as e:
            logger.warning("[pipeline] detection failed on frame: %s", e)
            return NOT_FOUND

    def rectify(self, image: np.ndarray, quad: Optional[Quadrilateral] = None) -> Union[np.ndarray, NotFound]:
        """Capture-pass rectification with the configured capture preset and cleanup."""
        if not self.available:
            return NOT_FOUND
        import cv2
        from docscan.geometry.rectify import rectify

        try:
            return rectify(image, quad, params=self.config.capture, cleanup=self.config.cleanup)
        except cv2.error as e:
            logger.warning("[pipeline] rectification failed: %s", e)
            return NOT_FOUND


def init_pipeline(
    config: Optional[ScanConfig] = None,
    probe: Callable[[], None] = probe_backend,
) -> PipelineHandle:
    """Create the handle once at startup. Never raises for a broken backend."""
    config = config or ScanConfig()
    try:
        probe()
    except Exception as e:  # ImportError, cv2.error, or whatever the probe raises
        reason = f"{type(e).__name__}: {e}"
        logger.error("[pipeline] %s; continuing in passthrough mode", reason)
        return PipelineHandle(available=False, reason=reason, config=config)
    logger.info("[pipeline] vision backend ready")
    return PipelineHandle(available=True, config=config)


def scan_capture(handle: PipelineHandle, image: np.ndarray, fallback: str = FALLBACK_PASSTHROUGH):
    """
    Rectify a capture, applying a caller-chosen policy when that fails.

    fallback="passthrough" returns a copy of the raw capture (degraded
    backend or no document); fallback="reject" returns NOT_FOUND.
    """
    if fallback not in (FALLBACK_PASSTHROUGH, FALLBACK_REJECT):
        raise ValueError(f"unknown fallback policy {fallback!r}")
    out = handle.rectify(image)
    if isinstance(out, np.ndarray):
        return out
    if fallback == FALLBACK_PASSTHROUGH:
        logger.info("[pipeline] capture not rectified; passing raw image through")
        return np.array(image, copy=True)
    return NOT_FOUND
