# docscan/geometry/rectify.py
from __future__ import annotations
from typing import Optional, Tuple, Union
import logging
import cv2
import numpy as np

from docscan.core.contracts import (
    CAPTURE_PARAMS,
    NOT_FOUND,
    CleanupParams,
    DetectionParams,
    NotFound,
    Quadrilateral,
)
from docscan.geometry.detect import detect

logger = logging.getLogger(__name__)


def target_corners(width: int, height: int) -> np.ndarray:
    """Destination rectangle in TL, TR, BR, BL order."""
    return np.array([[0, 0],
                     [width - 1, 0],
                     [width - 1, height - 1],
                     [0, height - 1]], dtype=np.float32)


def perspective_matrix(quad: Quadrilateral, size: Tuple[int, int]) -> np.ndarray:
    """3x3 homography taking quad's corners onto a (width, height) rectangle."""
    width, height = size
    return cv2.getPerspectiveTransform(quad.pts.astype(np.float32), target_corners(width, height))


def warp_document(image: np.ndarray, quad: Quadrilateral) -> np.ndarray:
    """
    Perspective-warp the quad into a rectangle the size of the input image.

    The output keeps the capture resolution; it does not try to recover the
    physical page's aspect ratio from edge lengths.
    """
    h, w = image.shape[:2]
    M = perspective_matrix(quad, (w, h))
    return cv2.warpPerspective(
        image, M, (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )


def _as_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2 or image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def scan_cleanup(image: np.ndarray, cleanup: CleanupParams = CleanupParams()) -> np.ndarray:
    """Grayscale + adaptive threshold, returned as 3-channel BGR (all channels equal)."""
    if image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    else:
        gray = image
    binary = cv2.adaptiveThreshold(
        gray, 255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        cleanup.block_size, cleanup.bias,
    )
    return cv2.cvtColor(binary, cv2.COLOR_GRAY2BGR)


def rectify(
    image: np.ndarray,
    quad: Optional[Quadrilateral] = None,
    *,
    params: DetectionParams = CAPTURE_PARAMS,
    cleanup: CleanupParams = CleanupParams(),
) -> Union[np.ndarray, NotFound]:
    """
    Produce a flattened, scan-looking document image from a captured still.

    Args:
        image: full-resolution capture (BGR, BGRA or grayscale). Never modified.
        quad: corners to use. When None, detection is re-run on `image`
              with `params` (the capture preset by default), so corners from
              a smaller or older preview frame are never reused.
        params: detection settings for the internal pass.
        cleanup: adaptive-threshold settings; cleanup.enabled=False skips it.

    Returns:
        New 3-channel BGR image with the input's width and height, or NOT_FOUND.
    """
    if quad is None:
        found = detect(image, params)
        if not found:
            logger.debug("[rectify] no document in capture")
            return NOT_FOUND
        quad = found.quad

    warped = warp_document(_as_bgr(image), quad)
    if not cleanup.enabled:
        return warped
    return scan_cleanup(warped, cleanup)
