"""Tests for stage preprocessing."""

import numpy as np
import pytest

from text_ocr.preprocess import det_resize, normalize_image, resize_norm_img, to_bgr


class TestDetResize:
    """Tests for detection resizing."""

    def test_small_image_rounded_to_32(self):
        img = np.zeros((100, 50, 3), dtype=np.uint8)

        resized, shape = det_resize(img, limit_side_len=960)

        assert resized.shape == (96, 64, 3)
        assert shape[0] == 100 and shape[1] == 50
        assert shape[2] == pytest.approx(0.96)
        assert shape[3] == pytest.approx(64 / 50)

    def test_large_image_limited(self):
        img = np.zeros((2000, 1000, 3), dtype=np.uint8)

        resized, _ = det_resize(img, limit_side_len=960, limit_type="max")

        assert resized.shape[:2] == (960, 480)

    def test_min_limit_grows_short_side(self):
        img = np.zeros((100, 200, 3), dtype=np.uint8)

        resized, _ = det_resize(img, limit_side_len=320, limit_type="min")

        assert resized.shape[:2] == (320, 640)

    def test_never_below_32(self):
        resized, _ = det_resize(np.zeros((5, 5, 3), dtype=np.uint8))
        assert resized.shape[:2] == (32, 32)

    def test_unknown_limit_type(self):
        with pytest.raises(ValueError):
            det_resize(np.zeros((10, 10, 3), dtype=np.uint8), limit_type="avg")


class TestNormalize:
    """Tests for normalization helpers."""

    def test_normalize_image_chw(self):
        out = normalize_image(np.zeros((4, 6, 3), dtype=np.uint8))

        assert out.shape == (3, 4, 6)
        assert out.dtype == np.float32
        assert out[0, 0, 0] == pytest.approx(-0.485 / 0.229, rel=1e-5)

    def test_resize_norm_img_pads(self):
        img = np.full((10, 20, 3), 255, dtype=np.uint8)

        out = resize_norm_img(img, [3, 48, 320])

        assert out.shape == (3, 48, 320)
        # 48 * 2 = 96 columns of content, zeros after
        assert out[:, :, :96].min() == pytest.approx(1.0)
        assert np.all(out[:, :, 96:] == 0)

    def test_resize_norm_img_clamps_wide(self):
        img = np.zeros((10, 1000, 3), dtype=np.uint8)

        out = resize_norm_img(img, [3, 48, 192])

        assert out.shape == (3, 48, 192)
        assert out.max() == pytest.approx(-1.0)

    def test_resize_norm_img_batch_ratio(self):
        img = np.zeros((10, 20, 3), dtype=np.uint8)
        out = resize_norm_img(img, [3, 48, 320], max_wh_ratio=10.0)
        assert out.shape == (3, 48, 480)

    def test_single_channel_model(self):
        out = resize_norm_img(np.zeros((10, 20, 3), dtype=np.uint8), [1, 32, 100])
        assert out.shape == (1, 32, 100)

    def test_to_bgr(self):
        assert to_bgr(np.zeros((4, 4), dtype=np.uint8)).shape == (4, 4, 3)
        assert to_bgr(np.zeros((4, 4, 4), dtype=np.uint8)).shape == (4, 4, 3)
        img = np.zeros((4, 4, 3), dtype=np.uint8)
        assert to_bgr(img) is img
