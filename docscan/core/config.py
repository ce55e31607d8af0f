"""
YAML overrides for the detection presets and the cleanup filter.

Layout (every section and key optional):

    preview:  {blur_kernel: 3, canny_low: 20, ...}
    capture:  {min_contour_area: 1500, ...}
    cleanup:  {block_size: 15, bias: 15}
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import logging

import yaml

from docscan.core.contracts import (
    CAPTURE_PARAMS,
    PREVIEW_PARAMS,
    CleanupParams,
    DetectionParams,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanConfig:
    preview: DetectionParams = PREVIEW_PARAMS
    capture: DetectionParams = CAPTURE_PARAMS
    cleanup: CleanupParams = field(default_factory=CleanupParams)


def _override(base, section: str, values: Optional[Mapping[str, Any]]):
    if not values:
        return base
    if not isinstance(values, Mapping):
        raise ValueError(f"config section '{section}' must be a mapping, got {type(values).__name__}")
    known = {f.name for f in fields(base)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"unknown key(s) in '{section}': {', '.join(map(str, unknown))}")
    return replace(base, **dict(values))


def config_from_dict(data: Optional[Mapping[str, Any]]) -> ScanConfig:
    """Merge a (partial) mapping onto the built-in defaults."""
    data = data or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"config root must be a mapping, got {type(data).__name__}")
    unknown = sorted(set(data) - {"preview", "capture", "cleanup"})
    if unknown:
        raise ValueError(f"unknown config section(s): {', '.join(map(str, unknown))}")
    defaults = ScanConfig()
    return ScanConfig(
        preview=_override(defaults.preview, "preview", data.get("preview")),
        capture=_override(defaults.capture, "capture", data.get("capture")),
        cleanup=_override(defaults.cleanup, "cleanup", data.get("cleanup")),
    )


def load_config(path: Union[str, Path]) -> ScanConfig:
    """
    Load a scanner YAML config.
    Raises FileNotFoundError if missing and ValueError if malformed.
    """
    with open(path, "r") as f:
        data: Dict[str, Any] = yaml.safe_load(f) or {}
    cfg = config_from_dict(data)
    logger.debug("[config] loaded %s: %s", path, cfg)
    return cfg
