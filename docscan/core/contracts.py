"""
Core contracts and simple data types shared across stages.

Images are plain numpy arrays (uint8, BGR or grayscale, OpenCV convention).
Nothing in here touches OpenCV, so these types stay usable when the vision
backend is missing.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple, Union
import math
import numpy as np


def _is_canonical(pts: np.ndarray) -> bool:
    tl, tr, br, bl = pts
    top = [(float(tl[1]), float(tl[0])), (float(tr[1]), float(tr[0]))]
    bottom = [(float(bl[1]), float(bl[0])), (float(br[1]), float(br[0]))]
    if max(top) > min(bottom):
        return False
    return tl[0] <= tr[0] and bl[0] <= br[0]


def _number(name: str, value, cast=float):
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class Quadrilateral:
    """
    The four document corners in image coordinates (pixels), ordered clockwise:
    [top-left, top-right, bottom-right, bottom-left].

    pts: np.ndarray with shape (4, 2), dtype float32

    Construction validates the order; use geometry.corners.order_corners()
    to build one from unordered points.
    """
    pts: np.ndarray

    def __post_init__(self):
        p = np.array(self.pts, dtype=np.float32)
        if p.shape != (4, 2):
            raise ValueError(f"Quadrilateral needs shape (4, 2), got {p.shape}")
        if not np.isfinite(p).all():
            raise ValueError("Quadrilateral has non-finite coordinates")
        if not _is_canonical(p):
            raise ValueError(f"corners are not in TL, TR, BR, BL order:\n{p}")
        p.setflags(write=False)
        object.__setattr__(self, "pts", p)

    def __eq__(self, other):
        if not isinstance(other, Quadrilateral):
            return NotImplemented
        return bool(np.array_equal(self.pts, other.pts))

    def __hash__(self):
        return hash(self.pts.tobytes())

    @property
    def top_left(self) -> np.ndarray:
        return self.pts[0]

    @property
    def top_right(self) -> np.ndarray:
        return self.pts[1]

    @property
    def bottom_right(self) -> np.ndarray:
        return self.pts[2]

    @property
    def bottom_left(self) -> np.ndarray:
        return self.pts[3]

    def as_tuple(self) -> Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float], Tuple[float, float]]:
        return tuple(map(tuple, self.pts.astype(float)))  # type: ignore[return-value]

    def as_int_points(self) -> np.ndarray:
        """Rounded int32 corners, shaped for cv2.polylines overlays."""
        return np.rint(self.pts).astype(np.int32).reshape(-1, 1, 2)


@dataclass(frozen=True)
class Found:
    """A qualifying document boundary and the contour area it enclosed."""
    quad: Quadrilateral
    area: float

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class NotFound:
    """No qualifying quadrilateral in this frame. Expected, not an error."""

    def __bool__(self) -> bool:
        return False


NOT_FOUND = NotFound()

DetectionResult = Union[Found, NotFound]


@dataclass(frozen=True)
class DecodeFailure:
    """Input could not be turned into an image; an upstream capture problem."""
    reason: str

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class DetectionParams:
    """
    Tunable knobs for one detection pass.

    blur_kernel: odd Gaussian kernel size applied before Canny (1 = no blur).
    canny_low / canny_high: Canny hysteresis thresholds.
    min_contour_area: contours enclosing less than this (px^2) are noise.
    approx_epsilon_factor: Douglas-Peucker tolerance as a fraction of perimeter.
    angle_tolerance_degrees: max deviation from 90 deg allowed at every corner.
    """
    blur_kernel: int = 5
    canny_low: float = 75.0
    canny_high: float = 200.0
    min_contour_area: float = 1000.0
    approx_epsilon_factor: float = 0.02
    angle_tolerance_degrees: float = 30.0

    def __post_init__(self):
        k = self.blur_kernel
        ki = _number("blur_kernel", k, int)
        if isinstance(k, bool) or ki != k or ki < 1 or ki % 2 == 0:
            raise ValueError(f"blur_kernel must be a positive odd integer, got {k!r}")
        object.__setattr__(self, "blur_kernel", ki)
        for name in ("canny_low", "canny_high", "min_contour_area",
                     "approx_epsilon_factor", "angle_tolerance_degrees"):
            v = _number(name, getattr(self, name))
            if not math.isfinite(v):
                raise ValueError(f"{name} must be finite, got {v!r}")
            object.__setattr__(self, name, v)
        if not (0.0 <= self.canny_low <= self.canny_high):
            raise ValueError(f"need 0 <= canny_low <= canny_high, got "
                             f"({self.canny_low}, {self.canny_high})")
        if self.min_contour_area < 0.0:
            raise ValueError("min_contour_area must be >= 0")
        if self.approx_epsilon_factor <= 0.0:
            raise ValueError("approx_epsilon_factor must be > 0")
        if not (0.0 <= self.angle_tolerance_degrees <= 90.0):
            raise ValueError("angle_tolerance_degrees must be within [0, 90]")


# Live preview: small blur, sensitive edges, small documents accepted.
PREVIEW_PARAMS = DetectionParams(
    blur_kernel=3,
    canny_low=20.0,
    canny_high=60.0,
    min_contour_area=500.0,
    approx_epsilon_factor=0.02,
    angle_tolerance_degrees=30.0,
)

# Final capture: heavier blur, stricter edges.
CAPTURE_PARAMS = DetectionParams(
    blur_kernel=5,
    canny_low=75.0,
    canny_high=200.0,
    min_contour_area=1000.0,
    approx_epsilon_factor=0.02,
    angle_tolerance_degrees=30.0,
)


@dataclass(frozen=True)
class CleanupParams:
    """
    Adaptive-threshold settings for the "scanned" look.

    block_size: odd neighbourhood size in px used for the local threshold.
    bias: constant subtracted from the local Gaussian-weighted mean.
    enabled: False returns the bare perspective warp.
    """
    block_size: int = 15
    bias: float = 15.0
    enabled: bool = True

    def __post_init__(self):
        b = self.block_size
        bi = _number("block_size", b, int)
        if isinstance(b, bool) or bi != b or bi < 3 or bi % 2 == 0:
            raise ValueError(f"block_size must be an odd integer >= 3, got {b!r}")
        object.__setattr__(self, "block_size", bi)
        bias = _number("bias", self.bias)
        if not math.isfinite(bias):
            raise ValueError(f"bias must be finite, got {bias!r}")
        object.__setattr__(self, "bias", bias)
        object.__setattr__(self, "enabled", bool(self.enabled))
