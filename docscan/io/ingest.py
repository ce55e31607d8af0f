"""
Frame decoding: turn camera buffers into BGR images, as OpenCV expects.

decode_frame() and decode_nv21() fail closed: malformed input comes back as
a DecodeFailure value, never an exception.
"""

from __future__ import annotations
from typing import Union
import logging
import cv2
import numpy as np

from docscan.core.contracts import DecodeFailure

logger = logging.getLogger(__name__)

Decoded = Union[np.ndarray, DecodeFailure]


def _fail(reason: str) -> DecodeFailure:
    logger.warning("[decode] %s", reason)
    return DecodeFailure(reason)


def _array_to_bgr(arr: np.ndarray) -> Decoded:
    if arr.size == 0:
        return _fail(f"empty array of shape {arr.shape}")
    if arr.dtype != np.uint8:
        return _fail(f"expected uint8 pixels, got {arr.dtype}")
    if arr.ndim == 2:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2BGR)
    if arr.ndim == 3:
        channels = arr.shape[2]
        if channels == 1:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2BGR)
        if channels == 3:
            return np.ascontiguousarray(arr).copy()
        if channels == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2BGR)
    return _fail(f"unsupported array layout {arr.shape}")


def decode_frame(data) -> Decoded:
    """
    Decode one frame into an independent H x W x 3 uint8 BGR array.

    Accepts encoded still bytes (JPEG, PNG, ... anything cv2.imdecode reads)
    or an already decoded uint8 array in gray, BGR or BGRA layout.
    """
    if isinstance(data, np.ndarray):
        return _array_to_bgr(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(data, dtype=np.uint8)
        if buf.size == 0:
            return _fail("empty buffer")
        img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
        if img is None:
            return _fail(f"could not decode {buf.size} bytes as an image")
        return img
    return _fail(f"unsupported frame type {type(data).__name__}")


def decode_nv21(data, width: int, height: int) -> Decoded:
    """
    Convert a raw NV21 (YUV420 semi-planar) camera buffer to BGR.

    The buffer must hold width*height luma bytes followed by width*height/2
    interleaved VU bytes; width and height must be even.
    """
    if width <= 0 or height <= 0 or width % 2 or height % 2:
        return _fail(f"invalid NV21 frame size {width}x{height}")
    expected = width * height * 3 // 2
    if isinstance(data, np.ndarray):
        buf = data.reshape(-1)
    elif isinstance(data, (bytes, bytearray, memoryview)):
        buf = np.frombuffer(data, dtype=np.uint8)
    else:
        return _fail(f"unsupported NV21 buffer type {type(data).__name__}")
    if buf.dtype != np.uint8 or buf.size != expected:
        return _fail(f"NV21 buffer holds {buf.size} bytes, expected {expected} for {width}x{height}")
    yuv = buf.reshape(height * 3 // 2, width)
    return cv2.cvtColor(yuv, cv2.COLOR_YUV2BGR_NV21)


def load_image(path: str) -> np.ndarray:
    """
    Load an image from disk (BGR).
    Raises FileNotFoundError if not found.
    """
    img = cv2.imread(path, cv2.IMREAD_COLOR)
    if img is None:
        raise FileNotFoundError(f"Could not read image at: {path}")
    return img
