"""
Text Recognition Module - Stage 3 of OCR Pipeline

Recognizes text from upright text line crops with a CTC model.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import EngineConfig, RecognizerConfig
from .onnx_base import ONNXModel
from .postprocess import CTCLabelDecode
from .preprocess import resize_norm_img, to_bgr

logger = logging.getLogger(__name__)


class TextRecognizer:
    """Text recognition stage with batch processing."""

    def __init__(
        self,
        model_path: Union[str, Path],
        char_dict_path: Optional[Union[str, Path]],
        config: Optional[RecognizerConfig] = None,
        engine_config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            model_path: Recognition model (.onnx file or directory)
            char_dict_path: Character dictionary file
            config: Recognizer configuration (uses defaults if None)
            engine_config: Device/thread options (uses defaults if None)
        """
        self.config = config or RecognizerConfig()
        self.model = ONNXModel(engine_config).load(model_path)
        self.postprocess_op = CTCLabelDecode(
            character_dict_path=char_dict_path,
            use_space_char=self.config.use_space_char,
        )

    def run(self, img_list: Sequence[np.ndarray]) -> List[Tuple[str, float]]:
        """Recognize text in batch of images.

        Args:
            img_list: Text line crops (BGR)

        Returns:
            One (text, confidence) tuple per image, in input order
        """
        img_num = len(img_list)
        rec_res: List[Tuple[str, float]] = [("", 0.0)] * img_num
        if img_num == 0:
            return rec_res

        # Similar aspect ratios share a batch, which keeps padding small
        width_list = [img.shape[1] / float(img.shape[0]) for img in img_list]
        indices = np.argsort(np.array(width_list))

        img_c, img_h, img_w = self.config.rec_image_shape[:3]
        batch_num = self.config.rec_batch_num

        for beg_img_no in range(0, img_num, batch_num):
            end_img_no = min(img_num, beg_img_no + batch_num)
            batch_ids = [indices[ino] for ino in range(beg_img_no, end_img_no)]

            max_wh_ratio = img_w / img_h
            for idx in batch_ids:
                h, w = img_list[idx].shape[0:2]
                max_wh_ratio = max(max_wh_ratio, w * 1.0 / h)

            norm_img_batch = np.stack([
                resize_norm_img(to_bgr(img_list[idx]), self.config.rec_image_shape, max_wh_ratio)
                for idx in batch_ids
            ])

            outputs = self.model.run(self.model.get_input_feed(norm_img_batch))
            rec_result = self.postprocess_op(outputs[0])

            for idx, result in zip(batch_ids, rec_result):
                rec_res[idx] = result

        logger.debug("Recognized %d text lines", img_num)
        return rec_res

    __call__ = run

    def recognize_single(self, img: np.ndarray) -> Tuple[str, float]:
        """Recognize text in a single image."""
        return self.run([img])[0]

    def close(self) -> None:
        self.model.close()

    def __repr__(self):
        return f"TextRecognizer(model={self.model})"
