"""
End-to-end OCR over ONNX Runtime

Stages:
- TextDetector: Finds text regions in images
- TextClassifier: Corrects upside-down text lines
- TextRecognizer: Converts text line crops to strings

OCRPipeline sequences them: detected quads are put in reading order,
rectified into upright crops, optionally orientation-corrected and then
recognized. Each result carries the box it was read from.
"""

from .config import (
    ClassifierConfig,
    DetectorConfig,
    EngineConfig,
    OCRConfig,
    RecognizerConfig,
)
from .errors import (
    BatchSizeMismatchError,
    InvalidRegionError,
    ModelLoadError,
    ModelNotLoadedError,
    OCRError,
)
from .onnx_base import ONNXModel
from .pipeline import OCRPipeline
from .results import RecognitionResult, RectifiedRegion
from .utils import get_rotate_crop_image, sorted_boxes

__version__ = "0.1.0"
__all__ = [
    "OCRPipeline",
    "ONNXModel",
    "OCRConfig",
    "EngineConfig",
    "DetectorConfig",
    "ClassifierConfig",
    "RecognizerConfig",
    "RecognitionResult",
    "RectifiedRegion",
    "OCRError",
    "ModelLoadError",
    "ModelNotLoadedError",
    "InvalidRegionError",
    "BatchSizeMismatchError",
    "get_rotate_crop_image",
    "sorted_boxes",
]
