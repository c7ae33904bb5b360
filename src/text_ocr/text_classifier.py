"""
Text Orientation Classification Module - Stage 2 of OCR Pipeline

Detects upside-down text lines (0 or 180 degrees) and rotates them back.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from .config import ClassifierConfig, EngineConfig
from .onnx_base import ONNXModel
from .postprocess import ClsPostProcess
from .preprocess import resize_norm_img, to_bgr

logger = logging.getLogger(__name__)


class TextClassifier:
    """Text orientation classification stage with batch processing."""

    def __init__(
        self,
        model_path: Union[str, Path],
        config: Optional[ClassifierConfig] = None,
        engine_config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            model_path: Classification model (.onnx file or directory)
            config: Classifier configuration (uses defaults if None)
            engine_config: Device/thread options (uses defaults if None)
        """
        self.config = config or ClassifierConfig()
        self.model = ONNXModel(engine_config).load(model_path)
        self.postprocess_op = ClsPostProcess(label_list=self.config.label_list)

    def predict(self, img_list: Sequence[np.ndarray]) -> List[Tuple[str, float]]:
        """Return (label, score) for each image, in input order."""
        img_num = len(img_list)
        cls_res: List[Tuple[str, float]] = [("", 0.0)] * img_num
        if img_num == 0:
            return cls_res

        # Similar aspect ratios share a batch
        width_list = [img.shape[1] / float(img.shape[0]) for img in img_list]
        indices = np.argsort(np.array(width_list))
        batch_num = self.config.cls_batch_num

        for beg_img_no in range(0, img_num, batch_num):
            end_img_no = min(img_num, beg_img_no + batch_num)
            norm_img_batch = np.stack([
                resize_norm_img(to_bgr(img_list[indices[ino]]), self.config.cls_image_shape)
                for ino in range(beg_img_no, end_img_no)
            ])

            outputs = self.model.run(self.model.get_input_feed(norm_img_batch))
            cls_result = self.postprocess_op(outputs[0])

            for rno, (label, score) in enumerate(cls_result):
                cls_res[indices[beg_img_no + rno]] = (label, score)

        return cls_res

    def run(self, img_list: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Rotate images confidently classified as upside down.

        Args:
            img_list: Text line crops (BGR)

        Returns:
            New list, same length and order; untouched images are passed through
        """
        img_list = list(img_list)
        rotated = 0
        for idx, (label, score) in enumerate(self.predict(img_list)):
            if "180" in label and score > self.config.cls_thresh:
                img_list[idx] = cv2.rotate(img_list[idx], cv2.ROTATE_180)
                rotated += 1
        logger.debug("Rotated %d of %d text lines", rotated, len(img_list))
        return img_list

    __call__ = run

    def classify(self, img_list: Sequence[np.ndarray]) -> List[Tuple[str, float]]:
        """Classify orientation without rotating images."""
        return self.predict(list(img_list))

    def close(self) -> None:
        self.model.close()

    def __repr__(self):
        return f"TextClassifier(model={self.model})"
