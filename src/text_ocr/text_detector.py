"""
Text Detection Module - Stage 1 of OCR Pipeline

Finds text regions with a DBNet model and returns them as clockwise quads.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .config import DetectorConfig, EngineConfig
from .onnx_base import ONNXModel
from .postprocess import DBPostProcess
from .preprocess import det_resize, normalize_image, to_bgr
from .utils import point_distance

logger = logging.getLogger(__name__)


class TextDetector:
    """Text detection stage.

    The model is loaded in the constructor; a bad path raises
    :class:`~text_ocr.errors.ModelLoadError`.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        config: Optional[DetectorConfig] = None,
        engine_config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            model_path: Detection model (.onnx file or directory)
            config: Detector configuration (uses defaults if None)
            engine_config: Device/thread options (uses defaults if None)
        """
        self.config = config or DetectorConfig()
        self.model = ONNXModel(engine_config).load(model_path)
        self.postprocess_op = DBPostProcess(
            thresh=self.config.det_db_thresh,
            box_thresh=self.config.det_db_box_thresh,
            max_candidates=self.config.det_max_candidates,
            unclip_ratio=self.config.det_db_unclip_ratio,
            use_dilation=self.config.use_dilation,
        )

    def preprocess(self, image: np.ndarray):
        """Resize and normalize one BGR image.

        Returns:
            (batch of one CHW image, batch of one shape row)
        """
        img, shape = det_resize(
            to_bgr(image),
            limit_side_len=self.config.det_limit_side_len,
            limit_type=self.config.det_limit_type,
        )
        img = normalize_image(img)
        return np.expand_dims(img, axis=0), np.expand_dims(shape, axis=0)

    def run(self, image: np.ndarray) -> List[np.ndarray]:
        """Detect text in a single image.

        The input is read, never modified or kept.

        Args:
            image: Input image (H, W, C) in BGR

        Returns:
            List of int32 (4, 2) boxes in image coordinates
        """
        img_height, img_width = image.shape[0:2]
        batch, shape_list = self.preprocess(image)

        outputs = self.model.run(self.model.get_input_feed(batch))
        dt_boxes = self.postprocess_op(outputs[0], shape_list)[0]

        boxes = self.filter_tag_det_res(dt_boxes, img_height, img_width)
        logger.debug("Detected %d text regions", len(boxes))
        return boxes

    __call__ = run

    @staticmethod
    def order_points_clockwise(pts: np.ndarray) -> np.ndarray:
        """Order 4 points as top-left, top-right, bottom-right, bottom-left."""
        rect = np.zeros((4, 2), dtype=np.float32)
        s = pts.sum(axis=1)
        rect[0] = pts[np.argmin(s)]
        rect[2] = pts[np.argmax(s)]
        tmp = np.delete(pts, (np.argmin(s), np.argmax(s)), axis=0)
        diff = np.diff(np.array(tmp), axis=1)
        rect[1] = tmp[np.argmin(diff)]
        rect[3] = tmp[np.argmax(diff)]
        return rect

    @staticmethod
    def clip_det_res(points: np.ndarray, img_height: int, img_width: int) -> np.ndarray:
        """Clip points to image boundaries."""
        points[:, 0] = np.clip(points[:, 0], 0, img_width - 1)
        points[:, 1] = np.clip(points[:, 1], 0, img_height - 1)
        return points

    def filter_tag_det_res(
        self,
        dt_boxes: np.ndarray,
        img_height: int,
        img_width: int,
    ) -> List[np.ndarray]:
        """Order, clip and drop boxes 3 px or smaller on either side."""
        kept = []
        for box in dt_boxes:
            box = self.order_points_clockwise(np.asarray(box, dtype=np.float32))
            box = self.clip_det_res(box, img_height, img_width)

            if point_distance(box[0], box[1]) <= 3 or point_distance(box[0], box[3]) <= 3:
                continue
            kept.append(box.astype(np.int32))
        return kept

    def close(self) -> None:
        self.model.close()

    def __repr__(self):
        return f"TextDetector(model={self.model})"
