# docscan/geometry/detect.py
from __future__ import annotations
from typing import List, Optional, Tuple
import logging
import cv2
import numpy as np

from docscan.core.contracts import (
    NOT_FOUND,
    PREVIEW_PARAMS,
    DetectionParams,
    DetectionResult,
    Found,
)
from docscan.geometry.corners import is_rectangular, order_corners

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------------- #
# Edge map                                                                      #
# ----------------------------------------------------------------------------- #

def _to_gray(image: np.ndarray) -> Optional[np.ndarray]:
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        return None
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    return None


def detect_edges(image: np.ndarray, params: DetectionParams = PREVIEW_PARAMS) -> Optional[np.ndarray]:
    """Grayscale -> Gaussian blur -> Canny. None if the array is not an image."""
    gray = _to_gray(image)
    if gray is None:
        return None
    if gray.dtype != np.uint8:
        gray = cv2.convertScaleAbs(gray)
    k = params.blur_kernel
    blurred = cv2.GaussianBlur(gray, (k, k), 0) if k > 1 else gray
    return cv2.Canny(blurred, params.canny_low, params.canny_high)


# ----------------------------------------------------------------------------- #
# Contour path                                                                   #
# ----------------------------------------------------------------------------- #

def _external_contours(edges: np.ndarray):
    found = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    # OpenCV 3 returns (img, cnts, hier), OpenCV 4 returns (cnts, hier)
    return found[0] if len(found) == 2 else found[1]


def find_quad_candidates(image: np.ndarray, params: DetectionParams = PREVIEW_PARAMS) -> List[Tuple[float, np.ndarray]]:
    """
    Every external contour that simplifies to a near-rectangular 4-gon.

    Returns (contour_area, vertices[4, 2]) pairs in contour-scan order. The
    vertices are in the order approxPolyDP produced them, not yet canonical.
    """
    edges = detect_edges(image, params)
    if edges is None:
        logger.debug("[detect] not an image: %r", getattr(image, "shape", None))
        return []

    cnts = _external_contours(edges)
    candidates: List[Tuple[float, np.ndarray]] = []
    rejected_area = rejected_sides = rejected_angle = 0
    for c in cnts:
        area = float(cv2.contourArea(c))
        if area < params.min_contour_area:
            rejected_area += 1
            continue
        peri = cv2.arcLength(c, True)
        approx = cv2.approxPolyDP(c, params.approx_epsilon_factor * peri, True)
        if len(approx) != 4:
            rejected_sides += 1
            continue
        quad = approx.reshape(4, 2).astype(np.float32)
        if not is_rectangular(quad, params.angle_tolerance_degrees):
            rejected_angle += 1
            continue
        candidates.append((area, quad))

    logger.debug(
        "[detect] contours=%d candidates=%d rejected(area=%d, sides=%d, angle=%d)",
        len(cnts), len(candidates), rejected_area, rejected_sides, rejected_angle,
    )
    return candidates


def detect(image: np.ndarray, params: DetectionParams = PREVIEW_PARAMS) -> DetectionResult:
    """
    Find the largest near-rectangular quadrilateral outline in a BGR frame.

    Returns Found(quad, area) with corners in TL, TR, BR, BL order, or
    NOT_FOUND when no contour qualifies. Ties on area keep the contour that
    came first in OpenCV's scan order.
    """
    best_area = -1.0
    best_quad: Optional[np.ndarray] = None
    for area, quad in find_quad_candidates(image, params):
        if area > best_area:
            best_area, best_quad = area, quad

    if best_quad is None:
        logger.debug("[detect] no document")
        return NOT_FOUND

    result = Found(quad=order_corners(best_quad), area=best_area)
    logger.debug("[detect] document area=%.1f corners=%s", best_area, result.quad.as_tuple())
    return result
