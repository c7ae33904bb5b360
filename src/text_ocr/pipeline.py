"""
High-level OCR Pipeline

Detect -> reading order -> rectify -> (classify) -> recognize.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import OCRConfig
from .errors import BatchSizeMismatchError, InvalidRegionError
from .models import registry
from .protocols import Classifier, Detector, Recognizer
from .results import RecognitionResult, RectifiedRegion
from .utils import as_quad, get_rotate_crop_image, sorted_boxes

logger = logging.getLogger(__name__)


class OCRPipeline:
    """
    Complete OCR pipeline combining detection, classification, and recognition.

    The stages are injected, so any objects following the
    :mod:`~text_ocr.protocols` interfaces work. Use :meth:`from_config` for
    the ONNX-backed defaults.

    A pipeline holds no per-call state, but each loaded model serializes its
    own inference calls.

    Usage:
        with OCRPipeline.from_config({"use_angle_cls": True}) as ocr:
            for result in ocr.run(image):
                print(result.text, result.score)
    """

    def __init__(
        self,
        detector: Detector,
        recognizer: Recognizer,
        classifier: Optional[Classifier] = None,
        max_workers: int = 1,
    ):
        """
        Args:
            detector: Finds text regions
            recognizer: Reads text line crops
            classifier: Fixes upside-down crops; skipped entirely if None
            max_workers: Threads used to rectify regions (1 = in order)
        """
        self.detector = detector
        self.recognizer = recognizer
        self.classifier = classifier
        self.max_workers = max(1, max_workers)

    @classmethod
    def from_config(cls, config: Union[OCRConfig, Mapping[str, Any], None] = None) -> "OCRPipeline":
        """Load the ONNX detector, recognizer and (optionally) classifier.

        Args:
            config: An OCRConfig or a flat option mapping

        Raises:
            ModelLoadError: If any model cannot be loaded
        """
        # Deferred so the injected-stage path never imports onnxruntime
        from .text_classifier import TextClassifier
        from .text_detector import TextDetector
        from .text_recognizer import TextRecognizer

        if not isinstance(config, OCRConfig):
            config = OCRConfig.from_args(config)

        detector = TextDetector(
            config.det_model_dir or registry.get("detector"),
            config.detector,
            config.engine,
        )
        recognizer = TextRecognizer(
            config.rec_model_dir or registry.get("recognizer"),
            config.rec_char_dict_path or registry.get("dictionary"),
            config.recognizer,
            config.engine,
        )
        classifier = None
        if config.use_angle_cls:
            classifier = TextClassifier(
                config.cls_model_dir or registry.get("classifier"),
                config.classifier,
                config.engine,
            )
        return cls(detector, recognizer, classifier, max_workers=config.max_workers)

    def detect(self, img: np.ndarray) -> List[np.ndarray]:
        """Detect text regions and return them in reading order."""
        dt_boxes = self.detector.run(img)
        if len(dt_boxes) == 0:
            return []
        valid = []
        for box in dt_boxes:
            try:
                as_quad(box)
            except InvalidRegionError as exc:
                logger.warning("Skipping region %r: %s", box, exc)
                continue
            valid.append(box)
        return sorted_boxes(valid)

    def rectify(self, img: np.ndarray, boxes: Sequence[np.ndarray]) -> List[RectifiedRegion]:
        """Crop every box out of ``img``, skipping boxes that cannot be rectified.

        Output order follows ``boxes`` regardless of ``max_workers``.
        """
        if self.max_workers > 1 and len(boxes) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                crops = list(executor.map(lambda box: self._rectify_one(img, box), boxes))
        else:
            crops = [self._rectify_one(img, box) for box in boxes]
        return [crop for crop in crops if crop is not None]

    @staticmethod
    def _rectify_one(img: np.ndarray, box: np.ndarray) -> Optional[RectifiedRegion]:
        try:
            crop = get_rotate_crop_image(img, box)
        except InvalidRegionError as exc:
            logger.warning("Skipping region %r: %s", box, exc)
            return None
        return RectifiedRegion(image=crop, box=np.array(box, copy=True))

    def recognize(self, img_list: Sequence[np.ndarray]) -> List[Tuple[str, float]]:
        """Classify (if configured) and recognize pre-cropped text lines."""
        img_list = list(img_list)
        if not img_list:
            return []

        if self.classifier is not None:
            corrected = self.classifier.run(img_list)
            if len(corrected) != len(img_list):
                raise BatchSizeMismatchError("classifier", len(img_list), len(corrected))
            img_list = list(corrected)

        rec_res = self.recognizer.run(img_list)
        if len(rec_res) != len(img_list):
            raise BatchSizeMismatchError("recognizer", len(img_list), len(rec_res))
        return list(rec_res)

    def run(self, img: np.ndarray) -> List[RecognitionResult]:
        """Full OCR on one image.

        Args:
            img: Input image (BGR)

        Returns:
            One result per rectified region, in reading order. Each result's
            bbox is the region it was read from, in ``img`` coordinates.
        """
        start = time.perf_counter()
        # The detector may scribble on its argument; crops come from this copy
        src_img = img.copy()

        dt_boxes = self.detect(img)
        if not dt_boxes:
            logger.debug("No text regions detected")
            return []

        regions = self.rectify(src_img, dt_boxes)
        rec_res = self.recognize([region.image for region in regions])

        results = [
            RecognitionResult(text=text, score=float(score), bbox=region.box)
            for region, (text, score) in zip(regions, rec_res)
        ]
        logger.debug(
            "OCR found %d regions, recognized %d in %.3fs",
            len(dt_boxes),
            len(results),
            time.perf_counter() - start,
        )
        return results

    __call__ = run

    def close(self) -> None:
        """Release every stage that holds a model."""
        for stage in (self.detector, self.classifier, self.recognizer):
            close = getattr(stage, "close", None)
            if close is not None:
                close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __repr__(self):
        return (
            f"OCRPipeline(\n"
            f"  detector={self.detector},\n"
            f"  classifier={self.classifier},\n"
            f"  recognizer={self.recognizer}\n"
            f")"
        )
