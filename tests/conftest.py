"""Pytest configuration and fixtures."""

import numpy as np
import pytest


def make_quad(x, y, w=40, h=12):
    """Axis-aligned (4, 2) box with its top-left corner at (x, y)."""
    return np.array([[x, y], [x + w, y], [x + w, y + h], [x, y + h]], dtype=np.int32)


class MeanRecognizer:
    """Recognizer stub that 'reads' each crop as its mean pixel value."""

    def __init__(self):
        self.calls = []

    def run(self, images):
        self.calls.append(list(images))
        return [(str(int(round(float(img.mean())))), 0.9) for img in images]


@pytest.fixture
def make_box():
    return make_quad


@pytest.fixture
def blank_image():
    """A 100x100 white BGR image."""
    return np.full((100, 100, 3), 255, dtype=np.uint8)


@pytest.fixture
def mean_recognizer():
    return MeanRecognizer()


@pytest.fixture
def char_dict(tmp_path):
    """A three-symbol character dictionary file."""
    path = tmp_path / "dict.txt"
    path.write_text("a\nb\nc\n", encoding="utf-8")
    return path
