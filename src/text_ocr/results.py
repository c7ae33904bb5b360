"""Result containers passed between pipeline stages."""

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np


@dataclass(frozen=True, eq=False)
class RectifiedRegion:
    """An upright text-line crop and the source-image box it was cut from."""
    image: np.ndarray
    box: np.ndarray  # (4, 2) corners in source-image coordinates


@dataclass(frozen=True, eq=False)
class RecognitionResult:
    """Recognized text for one detected region."""
    text: str
    score: float  # 0.0 - 1.0
    bbox: np.ndarray  # (4, 2) corners in source-image coordinates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "score": float(self.score),
            "bbox": np.rint(np.asarray(self.bbox, dtype=np.float64)).astype(int).tolist(),
        }
