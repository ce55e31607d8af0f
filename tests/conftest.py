from __future__ import annotations

import numpy as np
import pytest

from synthetic import TILTED_DOC, make_document_template, place_document_in_frame


@pytest.fixture
def tilted_document_scene() -> tuple[np.ndarray, np.ndarray]:
    """A perspective-distorted page in a dark frame, plus its true TL, TR, BR, BL corners."""
    return place_document_in_frame(make_document_template(), TILTED_DOC), TILTED_DOC.copy()
