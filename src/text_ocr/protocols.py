"""Capability interfaces the pipeline depends on.

Any object with a matching ``run`` method can stand in for a stage, which
is how the tests drive the pipeline without model weights.
"""

from typing import List, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np


@runtime_checkable
class Detector(Protocol):
    def run(self, image: np.ndarray) -> List[np.ndarray]:
        """Return the (4, 2) corners of every text region in ``image``."""
        ...


@runtime_checkable
class Classifier(Protocol):
    def run(self, images: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Return the images in the same order, orientation-corrected."""
        ...


@runtime_checkable
class Recognizer(Protocol):
    def run(self, images: Sequence[np.ndarray]) -> List[Tuple[str, float]]:
        """Return one (text, confidence) pair per image, in order."""
        ...
