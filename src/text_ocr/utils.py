"""Geometry helpers: reading order, region rectification and drawing."""

import logging
import math
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .errors import InvalidRegionError

logger = logging.getLogger(__name__)

# Baselines closer than this (in pixels) are treated as the same text line
LINE_TOLERANCE = 10

# Crops at least this many times taller than wide are treated as vertical text
VERTICAL_RATIO = 1.5


def as_quad(points) -> np.ndarray:
    """Return ``points`` as a ``(4, 2)`` array, or raise InvalidRegionError."""
    try:
        quad = np.asarray(points)
    except ValueError as exc:
        raise InvalidRegionError(f"Ragged corner list: {exc}") from exc
    if quad.shape != (4, 2):
        raise InvalidRegionError(f"Expected 4 corner points, got shape {quad.shape}")
    if not np.isfinite(quad.astype(np.float64)).all():
        raise InvalidRegionError("Region has non-finite coordinates")
    return quad


def box_bounds(points: np.ndarray) -> Tuple[int, int, int, int]:
    """Return ``(left, top, right, bottom)`` of a point set."""
    xs = points[:, 0]
    ys = points[:, 1]
    return int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())


def point_distance(p, q) -> float:
    """Euclidean distance between two points."""
    return math.hypot(float(p[0]) - float(q[0]), float(p[1]) - float(q[1]))


def sorted_boxes(
    dt_boxes: Sequence[np.ndarray],
    line_tolerance: int = LINE_TOLERANCE,
) -> List[np.ndarray]:
    """Sort text boxes from top to bottom, left to right.

    Boxes are ordered by the (y, x) of their first corner. A single pass
    over neighbours then swaps pairs whose first corners are less than
    ``line_tolerance`` pixels apart vertically but inverted horizontally.

    The pass is not repeated, so a run of three or more boxes on one line
    that arrive right-to-left is only partially repaired.

    Args:
        dt_boxes: Detection boxes, each (4, 2)
        line_tolerance: Vertical distance under which boxes share a line

    Returns:
        New list with the same boxes in reading order
    """
    _boxes = sorted(dt_boxes, key=lambda x: (x[0][1], x[0][0]))

    for i in range(len(_boxes) - 1):
        if abs(_boxes[i + 1][0][1] - _boxes[i][0][1]) < line_tolerance and \
           (_boxes[i + 1][0][0] < _boxes[i][0][0]):
            _boxes[i], _boxes[i + 1] = _boxes[i + 1], _boxes[i]

    return _boxes


def get_rotate_crop_image(
    img: np.ndarray,
    points,
    interpolation: int = cv2.INTER_CUBIC,
) -> np.ndarray:
    """Crop a text region and warp it into an upright rectangle.

    Corners are expected as [top-left, top-right, bottom-right, bottom-left].
    The output is ``|p0 - p1|`` wide and ``|p0 - p3|`` high (at least 1 px).
    Crops at least 1.5 times taller than wide are turned 90 degrees
    counter-clockwise so the line reads left to right.

    Neither ``img`` nor ``points`` is modified.

    Args:
        img: Source image (H, W) or (H, W, C)
        points: Text region corners, (4, 2)
        interpolation: OpenCV interpolation flag for the warp

    Returns:
        Newly allocated crop

    Raises:
        InvalidRegionError: If the region cannot be rectified
    """
    box = as_quad(points)
    left, top, right, bottom = box_bounds(box)

    img_height, img_width = img.shape[0:2]
    if left < 0 or top < 0 or right > img_width or bottom > img_height:
        raise InvalidRegionError(
            f"Region ({left}, {top}, {right}, {bottom}) lies outside "
            f"the {img_width}x{img_height} image"
        )
    if right <= left or bottom <= top:
        raise InvalidRegionError("Region has zero area")

    # View, not a copy
    img_crop = img[top:bottom, left:right]
    local_box = box.astype(np.float32) - np.float32([left, top])

    width_dist = point_distance(local_box[0], local_box[1])
    height_dist = point_distance(local_box[0], local_box[3])
    if width_dist == 0 or height_dist == 0:
        raise InvalidRegionError("Region has coincident corners")

    img_crop_width = max(1, int(width_dist))
    img_crop_height = max(1, int(height_dist))

    pts_std = np.float32([
        [0, 0],
        [img_crop_width, 0],
        [img_crop_width, img_crop_height],
        [0, img_crop_height],
    ])

    M = cv2.getPerspectiveTransform(local_box, pts_std)
    dst_img = cv2.warpPerspective(
        img_crop,
        M,
        (img_crop_width, img_crop_height),
        borderMode=cv2.BORDER_REPLICATE,
        flags=interpolation,
    )

    dst_img_height, dst_img_width = dst_img.shape[0:2]
    if dst_img_height >= dst_img_width * VERTICAL_RATIO:
        dst_img = cv2.flip(cv2.transpose(dst_img), 0)

    return dst_img


def draw_ocr_boxes(
    image: np.ndarray,
    boxes: Sequence,
    texts: Optional[Sequence[str]] = None,
    scores: Optional[Sequence[float]] = None,
    drop_score: float = 0.5,
    font_path: Optional[str] = None,
) -> np.ndarray:
    """Draw OCR results on image.

    Args:
        image: Source image (BGR)
        boxes: Detection boxes
        texts: Recognized texts
        scores: Confidence scores
        drop_score: Boxes scoring below this are not drawn
        font_path: TrueType font for labels (Pillow's default if None)

    Returns:
        New BGR image with drawn boxes and text
    """
    from PIL import Image, ImageDraw, ImageFont

    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    img = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(img)

    font = ImageFont.load_default()
    if font_path:
        try:
            font = ImageFont.truetype(font_path, 18)
        except OSError:
            logger.warning("Could not load font %s, using default", font_path)

    for idx, box in enumerate(boxes):
        if scores is not None and scores[idx] < drop_score:
            continue

        box = np.asarray(box).astype(np.int32).reshape(-1, 2)
        draw.polygon([tuple(int(v) for v in p) for p in box], outline=(0, 255, 0))

        if texts is not None and idx < len(texts):
            draw.text(
                (int(box[0][0]), max(0, int(box[0][1]) - 20)),
                texts[idx],
                fill=(255, 0, 0),
                font=font,
            )

    return cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)
