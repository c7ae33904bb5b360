"""Image preprocessing shared by the detection, classification and recognition stages."""

import math
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


def to_bgr(img: np.ndarray) -> np.ndarray:
    """Return a 3-channel BGR view of a grayscale, BGR or BGRA image."""
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def det_resize(
    img: np.ndarray,
    limit_side_len: int = 960,
    limit_type: str = "max",
) -> Tuple[np.ndarray, np.ndarray]:
    """Resize an image for DB detection.

    With ``limit_type="max"`` the longer side is shrunk to ``limit_side_len``;
    with ``"min"`` the shorter side is grown to it. Both dimensions are then
    rounded to a multiple of 32.

    Returns:
        (resized image, [src_h, src_w, ratio_h, ratio_w])
    """
    src_h, src_w = img.shape[:2]

    if limit_type == "max":
        if max(src_h, src_w) > limit_side_len:
            ratio = float(limit_side_len) / max(src_h, src_w)
        else:
            ratio = 1.0
    elif limit_type == "min":
        if min(src_h, src_w) < limit_side_len:
            ratio = float(limit_side_len) / min(src_h, src_w)
        else:
            ratio = 1.0
    else:
        raise ValueError(f"Unknown limit_type: {limit_type}")

    resize_h = max(int(round(int(src_h * ratio) / 32) * 32), 32)
    resize_w = max(int(round(int(src_w * ratio) / 32) * 32), 32)

    resized = cv2.resize(img, (resize_w, resize_h))
    shape = np.array([src_h, src_w, resize_h / float(src_h), resize_w / float(src_w)])
    return resized, shape


def normalize_image(
    img: np.ndarray,
    mean: Sequence[float] = IMAGENET_MEAN,
    std: Sequence[float] = IMAGENET_STD,
    scale: float = 1.0 / 255.0,
) -> np.ndarray:
    """Scale, mean/std normalize and convert HWC to CHW float32."""
    mean = np.array(mean, dtype=np.float32).reshape((1, 1, 3))
    std = np.array(std, dtype=np.float32).reshape((1, 1, 3))
    img = (img.astype(np.float32) * np.float32(scale) - mean) / std
    return img.transpose((2, 0, 1))


def resize_norm_img(
    img: np.ndarray,
    image_shape: Sequence[int],
    max_wh_ratio: Optional[float] = None,
) -> np.ndarray:
    """Resize a text line to a fixed height, normalize to [-1, 1] and right-pad.

    Args:
        img: Text line image (H, W, C) in BGR
        image_shape: Model input [C, H, W]
        max_wh_ratio: If given, the padded width is ``H * max_wh_ratio``
            instead of ``W`` (used to size a whole recognition batch)

    Returns:
        Float32 array (C, H, padded_width)
    """
    img_c, img_h, img_w = image_shape
    if max_wh_ratio is not None:
        img_w = int(img_h * max_wh_ratio)

    h, w = img.shape[:2]
    ratio = w / float(h)
    if math.ceil(img_h * ratio) > img_w:
        resized_w = img_w
    else:
        resized_w = int(math.ceil(img_h * ratio))

    resized_image = cv2.resize(img, (resized_w, img_h)).astype(np.float32)
    if img_c == 1:
        if resized_image.ndim == 3:
            resized_image = cv2.cvtColor(resized_image, cv2.COLOR_BGR2GRAY)
        resized_image = resized_image[np.newaxis, :] / 255
    else:
        resized_image = resized_image.transpose((2, 0, 1)) / 255
    resized_image -= 0.5
    resized_image /= 0.5

    padding_im = np.zeros((img_c, img_h, img_w), dtype=np.float32)
    padding_im[:, :, 0:resized_w] = resized_image
    return padding_im
