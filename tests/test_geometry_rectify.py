"""
Pytest for perspective rectification + scan cleanup.
"""
from __future__ import annotations

import cv2
import numpy as np
import pytest

from docscan.core.contracts import NOT_FOUND, PREVIEW_PARAMS, CleanupParams
from docscan.geometry.corners import interior_angles, order_corners
from docscan.geometry.detect import detect
from docscan.geometry.rectify import (
    perspective_matrix,
    rectify,
    scan_cleanup,
    target_corners,
    warp_document,
)

from synthetic import FRAME_H, FRAME_W, blank_frame, max_corner_error

NO_CLEANUP = CleanupParams(enabled=False)


def _expected_block(w_out: int, h_out: int, w_page: int = 400, h_page: int = 300) -> np.ndarray:
    """Where the template's printed block lands after a perfect rectification."""
    sx = (w_out - 1) / (w_page - 1)
    sy = (h_out - 1) / (h_page - 1)
    x0, y0 = (w_page // 4) * sx, (h_page // 4) * sy
    x1, y1 = (3 * w_page // 4 - 1) * sx, (3 * h_page // 4 - 1) * sy
    return np.array([[x0, y0], [x1, y0], [x1, y1], [x0, y1]], np.float32)


def test_matrix_maps_corners_onto_target_rectangle(tilted_document_scene):
    _, truth = tilted_document_scene
    quad = order_corners(truth)
    M = perspective_matrix(quad, (FRAME_W, FRAME_H))
    mapped = cv2.perspectiveTransform(quad.pts.reshape(-1, 1, 2), M).reshape(4, 2)
    np.testing.assert_allclose(mapped, target_corners(FRAME_W, FRAME_H), atol=1e-3)


def test_warp_with_known_corners_squares_up_the_page(tilted_document_scene):
    frame, truth = tilted_document_scene

    out = rectify(frame, order_corners(truth), cleanup=NO_CLEANUP)

    assert out.shape == frame.shape
    # measure the printed block away from the output border
    m = 20
    inner = np.ascontiguousarray(out[m:-m, m:-m])
    got = detect(inner, PREVIEW_PARAMS)
    assert got, "printed block not found in rectified page"
    for a in interior_angles(got.quad.pts):
        assert abs(a - 90.0) <= 3.0
    expected = _expected_block(FRAME_W, FRAME_H) - m
    assert max_corner_error(got.quad.pts, expected) <= 6.0


def test_rectify_runs_its_own_detection(tilted_document_scene):
    frame, _ = tilted_document_scene

    out = rectify(frame, cleanup=NO_CLEANUP)

    assert isinstance(out, np.ndarray)
    assert out.shape == frame.shape
    # page fills the output: mostly paper, with the dark block in the middle
    gray = cv2.cvtColor(out, cv2.COLOR_BGR2GRAY)
    h, w = gray.shape
    assert gray[h // 2, w // 2] < 60
    assert gray[h // 8, w // 8] > 180
    assert gray[7 * h // 8, 7 * w // 8] > 180


def test_rectify_default_output_is_binary_grayscale(tilted_document_scene):
    frame, _ = tilted_document_scene

    out = rectify(frame)

    assert out.shape == frame.shape
    assert out.dtype == np.uint8
    assert np.array_equal(out[:, :, 0], out[:, :, 1])
    assert np.array_equal(out[:, :, 1], out[:, :, 2])
    assert set(np.unique(out)).issubset({0, 255})
    # flat regions come out white; only the ink outline is black
    assert (out == 255).mean() > 0.8


def test_rectify_never_mutates_input(tilted_document_scene):
    frame, truth = tilted_document_scene
    snapshot = frame.copy()

    rectify(frame)
    rectify(frame, order_corners(truth))

    assert np.array_equal(frame, snapshot)


@pytest.mark.parametrize("cleanup", [CleanupParams(), NO_CLEANUP])
@pytest.mark.parametrize("code", [cv2.COLOR_BGR2BGRA, cv2.COLOR_BGR2GRAY])
def test_rectify_output_is_bgr_for_any_input_layout(tilted_document_scene, cleanup, code):
    frame, truth = tilted_document_scene
    converted = cv2.cvtColor(frame, code)

    out = rectify(converted, order_corners(truth), cleanup=cleanup)

    assert out.shape == (FRAME_H, FRAME_W, 3)


def test_rectify_blank_capture_is_not_found():
    assert rectify(blank_frame()) is NOT_FOUND


def test_warp_document_keeps_input_size_for_grayscale():
    gray = np.full((120, 200), 200, np.uint8)
    quad = order_corners([[20, 10], [180, 15], [185, 110], [15, 100]])
    out = warp_document(gray, quad)
    assert out.shape == (120, 200)


@pytest.mark.parametrize("block_size,bias", [(15, 15.0), (31, 5.0)])
def test_scan_cleanup_outputs_three_equal_binary_channels(block_size, bias):
    rng = np.random.default_rng(1)
    img = rng.integers(0, 256, size=(90, 120, 3), dtype=np.uint8)

    out = scan_cleanup(img, CleanupParams(block_size=block_size, bias=bias))

    assert out.shape == (90, 120, 3)
    assert set(np.unique(out)).issubset({0, 255})
    assert np.array_equal(out[:, :, 0], out[:, :, 2])


def test_scan_cleanup_darkens_text_on_uneven_lighting():
    # left-to-right lighting ramp with a dark stroke on each side
    ramp = np.tile(np.linspace(90, 250, 300).astype(np.uint8), (100, 1))
    ramp[48:52, 30:80] = ramp[48:52, 30:80] // 3
    ramp[48:52, 220:270] = ramp[48:52, 220:270] // 3

    out = scan_cleanup(ramp)[:, :, 0]

    assert out[50, 50] == 0 and out[50, 245] == 0
    assert out[10, 20] == 255 and out[90, 280] == 255
