from __future__ import annotations

import cv2
import numpy as np
import pytest

from docscan.core.config import ScanConfig, config_from_dict
from docscan.core.contracts import NOT_FOUND, DecodeFailure, Found
from docscan.core.pipeline import (
    PipelineHandle,
    init_pipeline,
    probe_backend,
    scan_capture,
)

from synthetic import blank_frame


def _broken_probe():
    raise ImportError("No module named 'cv2'")


@pytest.fixture
def handle() -> PipelineHandle:
    return init_pipeline()


@pytest.fixture
def degraded() -> PipelineHandle:
    return init_pipeline(probe=_broken_probe)


def test_probe_passes_with_opencv_installed():
    probe_backend()


def test_init_pipeline_available(handle):
    assert handle.available
    assert handle.reason is None
    assert handle.config == ScanConfig()


def test_init_pipeline_keeps_config():
    cfg = config_from_dict({"preview": {"min_contour_area": 900}})
    assert init_pipeline(cfg).config.preview.min_contour_area == 900.0


def test_broken_backend_gives_degraded_handle(degraded, caplog):
    assert not degraded.available
    assert "ImportError" in degraded.reason
    with caplog.at_level("ERROR", logger="docscan.core.pipeline"):
        init_pipeline(probe=_broken_probe)
    assert "passthrough" in caplog.text


def test_handle_is_immutable(handle):
    with pytest.raises(AttributeError):
        handle.available = False


def test_degraded_handle_never_touches_backend(degraded, tilted_document_scene):
    frame, _ = tilted_document_scene
    assert degraded.detect(frame) is NOT_FOUND
    assert degraded.rectify(frame) is NOT_FOUND
    decoded = degraded.decode(b"\x89PNG")
    assert isinstance(decoded, DecodeFailure)
    assert "unavailable" in decoded.reason


def test_handle_detect_and_rectify(handle, tilted_document_scene):
    frame, _ = tilted_document_scene

    found = handle.detect(frame)
    out = handle.rectify(frame)

    assert isinstance(found, Found)
    assert isinstance(out, np.ndarray) and out.shape == frame.shape
    assert handle.detect(blank_frame()) is NOT_FOUND


def test_handle_converts_opencv_errors_to_not_found(handle):
    # cvtColor has no float64 path
    bad = np.zeros((20, 20, 3), np.float64)
    assert handle.detect(bad) is NOT_FOUND


def test_handle_decode(handle):
    ok, buf = cv2.imencode(".png", blank_frame(32, 24))
    assert handle.decode(buf.tobytes()).shape == (24, 32, 3)
    nv21 = bytes([128]) * (32 * 24 * 3 // 2)
    assert handle.decode(nv21, width=32, height=24).shape == (24, 32, 3)
    assert isinstance(handle.decode(nv21, width=32), DecodeFailure)
    assert isinstance(handle.decode(b"junk"), DecodeFailure)


def test_scan_capture_passthrough_when_degraded(degraded, tilted_document_scene):
    frame, _ = tilted_document_scene
    out = scan_capture(degraded, frame)
    assert out is not frame
    assert np.array_equal(out, frame)


def test_scan_capture_policies_when_nothing_found(handle):
    frame = blank_frame()
    assert np.array_equal(scan_capture(handle, frame), frame)
    assert scan_capture(handle, frame, fallback="reject") is NOT_FOUND
    with pytest.raises(ValueError):
        scan_capture(handle, frame, fallback="retry")


def test_scan_capture_returns_rectified_page(handle, tilted_document_scene):
    frame, _ = tilted_document_scene
    out = scan_capture(handle, frame, fallback="reject")
    assert isinstance(out, np.ndarray)
    assert not np.array_equal(out, frame)
