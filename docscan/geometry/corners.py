# docscan/geometry/corners.py
"""
Corner ordering and angle helpers shared by the detector and the
rectifier.
"""

from __future__ import annotations
from typing import List
import math
import numpy as np

from docscan.core.contracts import Quadrilateral


def _as_four_points(pts) -> np.ndarray:
    p = np.asarray(pts, dtype=np.float32)
    if p.size != 8:
        raise ValueError(f"expected exactly 4 points, got array of shape {p.shape}")
    return p.reshape(4, 2)


def order_points(pts) -> np.ndarray:
    """Return TL, TR, BR, BL given 4 unordered points.

    Points are sorted by y (ties by x). The two smallest-y points form the top
    pair, the other two the bottom pair; both pairs are then sorted by
    ascending x, so the bottom pair reads [BL, BR].
    """
    p = _as_four_points(pts)
    idx = np.lexsort((p[:, 0], p[:, 1]))
    top = p[idx[:2]]
    bot = p[idx[2:]]
    tl, tr = top[np.argsort(top[:, 0], kind="stable")]
    bl, br = bot[np.argsort(bot[:, 0], kind="stable")]
    return np.array([tl, tr, br, bl], dtype=np.float32)


def order_corners(pts) -> Quadrilateral:
    """Order 4 points canonically and wrap them as a Quadrilateral."""
    return Quadrilateral(order_points(pts))


def interior_angles(pts) -> List[float]:
    """Angle in degrees at each vertex of a closed polygon, in vertex order.

    A vertex with a zero-length adjacent edge reports 0.
    """
    p = np.asarray(pts, dtype=np.float64).reshape(-1, 2)
    n = len(p)
    angles = []
    for i in range(n):
        prev_pt = p[(i - 1) % n]
        cur = p[i]
        nxt = p[(i + 1) % n]
        v1 = prev_pt - cur
        v2 = nxt - cur
        m1 = math.hypot(v1[0], v1[1])
        m2 = math.hypot(v2[0], v2[1])
        if m1 == 0.0 or m2 == 0.0:
            angles.append(0.0)
            continue
        cos_a = float(np.dot(v1, v2)) / (m1 * m2)
        cos_a = max(-1.0, min(1.0, cos_a))
        angles.append(math.degrees(math.acos(cos_a)))
    return angles


def is_rectangular(pts, tolerance_deg: float) -> bool:
    """True when every interior angle lies within tolerance_deg of 90."""
    return all(abs(a - 90.0) <= tolerance_deg for a in interior_angles(pts))

