"""Decoders turning raw model outputs into boxes, labels and strings."""

from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
import pyclipper
from shapely.geometry import Polygon


class DBPostProcess:
    """Converts a DB (Differentiable Binarization) probability map to quads."""

    min_size = 3

    def __init__(
        self,
        thresh: float = 0.3,
        box_thresh: float = 0.6,
        max_candidates: int = 1000,
        unclip_ratio: float = 1.5,
        use_dilation: bool = False,
    ):
        """
        Args:
            thresh: Binarization threshold for the probability map
            box_thresh: Minimum mean probability inside a box
            max_candidates: Maximum number of contours examined
            unclip_ratio: How far shrunk text kernels are expanded
            use_dilation: Dilate the binary mask before contour search
        """
        self.thresh = thresh
        self.box_thresh = box_thresh
        self.max_candidates = max_candidates
        self.unclip_ratio = unclip_ratio
        self.dilation_kernel = np.ones((2, 2), dtype=np.uint8) if use_dilation else None

    def __call__(self, pred: np.ndarray, shape_list: np.ndarray) -> List[np.ndarray]:
        """
        Args:
            pred: Probability maps, (N, 1, H, W) or (N, H, W)
            shape_list: Rows of [src_h, src_w, ratio_h, ratio_w]

        Returns:
            One int32 array of shape (K, 4, 2) per batch item
        """
        if pred.ndim == 4:
            pred = pred[:, 0, :, :]
        segmentation = pred > self.thresh

        results = []
        for index in range(pred.shape[0]):
            src_h, src_w = shape_list[index][:2]
            mask = segmentation[index].astype(np.uint8)
            if self.dilation_kernel is not None:
                mask = cv2.dilate(mask, self.dilation_kernel)
            results.append(self.boxes_from_bitmap(pred[index], mask, int(src_w), int(src_h)))
        return results

    def boxes_from_bitmap(
        self,
        pred: np.ndarray,
        bitmap: np.ndarray,
        dest_width: int,
        dest_height: int,
    ) -> np.ndarray:
        """Extract quads from a binary mask and scale them to the source size."""
        height, width = bitmap.shape
        outs = cv2.findContours(
            (bitmap * 255).astype(np.uint8),
            cv2.RETR_LIST,
            cv2.CHAIN_APPROX_SIMPLE,
        )
        # OpenCV 3 returns (image, contours, hierarchy)
        contours = outs[0] if len(outs) == 2 else outs[1]

        boxes = []
        for contour in contours[:self.max_candidates]:
            points, sside = self.get_mini_boxes(contour)
            if sside < self.min_size:
                continue

            points = np.array(points)
            if self.box_score_fast(pred, points) < self.box_thresh:
                continue

            expanded = self.unclip(points, self.unclip_ratio)
            if expanded is None:
                continue
            box, sside = self.get_mini_boxes(expanded.reshape(-1, 1, 2).astype(np.float32))
            if sside < self.min_size + 2:
                continue

            box = np.array(box)
            box[:, 0] = np.clip(np.round(box[:, 0] / width * dest_width), 0, dest_width)
            box[:, 1] = np.clip(np.round(box[:, 1] / height * dest_height), 0, dest_height)
            boxes.append(box.astype(np.int32))

        if not boxes:
            return np.zeros((0, 4, 2), dtype=np.int32)
        return np.array(boxes, dtype=np.int32)

    @staticmethod
    def unclip(box: np.ndarray, unclip_ratio: float) -> Optional[np.ndarray]:
        """Grow a polygon outwards by area * ratio / perimeter (Vatti offset)."""
        poly = Polygon(box)
        if poly.length == 0:
            return None
        distance = poly.area * unclip_ratio / poly.length
        offset = pyclipper.PyclipperOffset()
        offset.AddPath([tuple(p) for p in box], pyclipper.JT_ROUND, pyclipper.ET_CLOSEDPOLYGON)
        expanded = offset.Execute(distance)
        if len(expanded) != 1:
            return None
        return np.array(expanded[0])

    @staticmethod
    def get_mini_boxes(contour) -> Tuple[List[np.ndarray], float]:
        """Minimum-area rectangle as clockwise corners from top-left, plus its short side."""
        bounding_box = cv2.minAreaRect(contour)
        points = sorted(list(cv2.boxPoints(bounding_box)), key=lambda x: x[0])

        # Two left-most points give top-left/bottom-left, two right-most the rest
        left = sorted(points[:2], key=lambda p: p[1])
        right = sorted(points[2:], key=lambda p: p[1])
        box = [left[0], right[0], right[1], left[1]]
        return box, min(bounding_box[1])

    @staticmethod
    def box_score_fast(bitmap: np.ndarray, box: np.ndarray) -> float:
        """Mean probability inside the box polygon."""
        h, w = bitmap.shape[:2]
        box = box.copy()

        xmin = int(np.clip(np.floor(box[:, 0].min()), 0, w - 1))
        xmax = int(np.clip(np.ceil(box[:, 0].max()), 0, w - 1))
        ymin = int(np.clip(np.floor(box[:, 1].min()), 0, h - 1))
        ymax = int(np.clip(np.ceil(box[:, 1].max()), 0, h - 1))

        mask = np.zeros((ymax - ymin + 1, xmax - xmin + 1), dtype=np.uint8)
        box[:, 0] = box[:, 0] - xmin
        box[:, 1] = box[:, 1] - ymin
        cv2.fillPoly(mask, box.reshape(1, -1, 2).astype(np.int32), 1)
        return cv2.mean(bitmap[ymin:ymax + 1, xmin:xmax + 1].astype(np.float32), mask)[0]


class ClsPostProcess:
    """Maps orientation probabilities to (label, score)."""

    def __init__(self, label_list: Optional[Sequence[str]] = None):
        self.label_list = list(label_list) if label_list else ["0", "180"]

    def __call__(self, preds: np.ndarray) -> List[Tuple[str, float]]:
        pred_idxs = preds.argmax(axis=1)
        return [
            (self.label_list[idx], float(preds[i, idx]))
            for i, idx in enumerate(pred_idxs)
        ]


class CTCLabelDecode:
    """Greedy CTC decoding for text recognition.

    Index 0 is the CTC blank; dictionary symbols follow in file order.
    """

    BLANK = "blank"

    def __init__(
        self,
        character_dict_path: Optional[Union[str, Path]] = None,
        use_space_char: bool = False,
    ):
        """
        Args:
            character_dict_path: UTF-8 file with one symbol per line
                (lowercase alphanumerics if None)
            use_space_char: Append a space symbol to the dictionary
        """
        if character_dict_path is None:
            characters = list("0123456789abcdefghijklmnopqrstuvwxyz")
        else:
            text = Path(character_dict_path).read_text(encoding="utf-8")
            characters = [line.rstrip("\r") for line in text.split("\n")]
            if characters and characters[-1] == "":
                characters.pop()
            if use_space_char:
                characters.append(" ")

        self.character = [self.BLANK] + characters

    def __call__(self, preds) -> List[Tuple[str, float]]:
        """
        Args:
            preds: Probabilities, (batch, time, num_classes)

        Returns:
            List of (text, confidence) tuples
        """
        if isinstance(preds, (tuple, list)):
            preds = preds[-1]
        preds_idx = preds.argmax(axis=2)
        preds_prob = preds.max(axis=2)
        return self.decode(preds_idx, preds_prob, is_remove_duplicate=True)

    def decode(
        self,
        text_index: np.ndarray,
        text_prob: Optional[np.ndarray] = None,
        is_remove_duplicate: bool = False,
    ) -> List[Tuple[str, float]]:
        """Convert index sequences to strings with mean character confidence."""
        result_list = []
        for batch_idx, indices in enumerate(text_index):
            indices = np.asarray(indices)
            selection = np.ones(len(indices), dtype=bool)
            if is_remove_duplicate:
                selection[1:] = indices[1:] != indices[:-1]
            selection &= indices != 0

            text = "".join(self.character[i] for i in indices[selection])
            if text_prob is not None:
                conf_list = np.asarray(text_prob[batch_idx])[selection]
            else:
                conf_list = np.ones(int(selection.sum()))
            score = float(np.mean(conf_list)) if len(conf_list) else 0.0
            result_list.append((text, score))

        return result_list
