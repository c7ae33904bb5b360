"""Tests for the detection-to-recognition pipeline."""

import logging
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from text_ocr.config import OCRConfig
from text_ocr.errors import BatchSizeMismatchError
from text_ocr.pipeline import OCRPipeline
from text_ocr.results import RecognitionResult


def tagged_image(boxes_and_values, size=(200, 200)):
    """White image with each (box, value) region filled with ``value``."""
    img = np.full(size + (3,), 255, dtype=np.uint8)
    for box, value in boxes_and_values:
        left, top = box.min(axis=0)
        right, bottom = box.max(axis=0)
        img[top:bottom, left:right] = value
    return img


def fake_detector(boxes):
    detector = MagicMock()
    detector.run.return_value = [b.copy() for b in boxes]
    return detector


class TestRun:
    """Tests for OCRPipeline.run."""

    def test_empty_detection(self, blank_image):
        detector = fake_detector([])
        recognizer = MagicMock()
        classifier = MagicMock()
        ocr = OCRPipeline(detector, recognizer, classifier)

        with patch("text_ocr.pipeline.get_rotate_crop_image") as rectify:
            result = ocr.run(blank_image)

        assert result == []
        rectify.assert_not_called()
        classifier.run.assert_not_called()
        recognizer.run.assert_not_called()

    def test_results_follow_reading_order(self, make_box, mean_recognizer):
        r1 = make_box(10, 10)
        r2 = make_box(100, 12)
        r3 = make_box(20, 80)
        img = tagged_image([(r1, 10), (r2, 20), (r3, 30)])
        # Detector reports them scrambled
        ocr = OCRPipeline(fake_detector([r3, r2, r1]), mean_recognizer)

        results = ocr.run(img)

        assert [r.text for r in results] == ["10", "20", "30"]
        for result, box in zip(results, [r1, r2, r3]):
            assert isinstance(result, RecognitionResult)
            np.testing.assert_array_equal(result.bbox, box)

    def test_order_kept_through_classifier(self, make_box, mean_recognizer):
        r1 = make_box(10, 10)
        r2 = make_box(10, 60)
        r3 = make_box(10, 120)
        img = tagged_image([(r1, 50), (r2, 60), (r3, 70)])
        classifier = MagicMock()
        classifier.run.side_effect = lambda images: [im.copy() for im in images]
        ocr = OCRPipeline(fake_detector([r2, r3, r1]), mean_recognizer, classifier)

        results = ocr.run(img)

        classifier.run.assert_called_once()
        assert len(classifier.run.call_args[0][0]) == 3
        assert [r.text for r in results] == ["50", "60", "70"]

    def test_classifier_output_replaces_crops(self, make_box, mean_recognizer):
        box = make_box(10, 10)
        img = tagged_image([(box, 40)])
        classifier = MagicMock()
        classifier.run.side_effect = lambda images: [np.zeros_like(im) for im in images]
        ocr = OCRPipeline(fake_detector([box]), mean_recognizer, classifier)

        results = ocr.run(img)

        assert results[0].text == "0"

    def test_no_classifier_configured(self, make_box, mean_recognizer):
        box = make_box(10, 10)
        ocr = OCRPipeline(fake_detector([box]), mean_recognizer, classifier=None)

        results = ocr.run(tagged_image([(box, 40)]))

        assert [r.text for r in results] == ["40"]
        assert len(mean_recognizer.calls) == 1

    def test_crops_come_from_unmodified_copy(self, make_box, mean_recognizer):
        box = make_box(10, 10)
        img = tagged_image([(box, 40)])

        def scribbling_run(image):
            image[:] = 0
            return [box.copy()]

        detector = MagicMock()
        detector.run.side_effect = scribbling_run
        ocr = OCRPipeline(detector, mean_recognizer)

        results = ocr.run(img)

        assert results[0].text == "40"

    def test_invalid_region_skipped(self, make_box, mean_recognizer, caplog):
        good = make_box(10, 10)
        outside = make_box(190, 50)  # runs past the right edge
        other = make_box(10, 100)
        img = tagged_image([(good, 40), (other, 80)])
        ocr = OCRPipeline(fake_detector([good, outside, other]), mean_recognizer)

        with caplog.at_level(logging.WARNING, logger="text_ocr.pipeline"):
            results = ocr.run(img)

        assert [r.text for r in results] == ["40", "80"]
        np.testing.assert_array_equal(results[1].bbox, other)
        assert "Skipping region" in caplog.text

    @pytest.mark.parametrize("bad", [
        np.zeros((0, 2)),
        [[0, 0], [10, 0], [10, 10], [0]],
    ], ids=["no-corners", "ragged-corners"])
    def test_malformed_region_skipped(self, make_box, mean_recognizer, caplog, bad):
        good = make_box(10, 10)
        detector = MagicMock()
        detector.run.return_value = [bad, good.copy()]
        ocr = OCRPipeline(detector, mean_recognizer)

        with caplog.at_level(logging.WARNING, logger="text_ocr.pipeline"):
            results = ocr.run(tagged_image([(good, 40)]))

        assert [r.text for r in results] == ["40"]
        np.testing.assert_array_equal(results[0].bbox, good)
        assert "Skipping region" in caplog.text

    def test_all_regions_invalid(self, make_box):
        recognizer = MagicMock()
        ocr = OCRPipeline(fake_detector([make_box(190, 190)]), recognizer)

        assert ocr.run(np.zeros((200, 200, 3), dtype=np.uint8)) == []
        recognizer.run.assert_not_called()

    def test_recognizer_batch_mismatch(self, make_box):
        recognizer = MagicMock()
        recognizer.run.return_value = [("a", 0.9)]
        boxes = [make_box(10, 10), make_box(10, 60)]
        ocr = OCRPipeline(fake_detector(boxes), recognizer)

        with pytest.raises(BatchSizeMismatchError) as exc_info:
            ocr.run(tagged_image([]))

        assert exc_info.value.stage == "recognizer"
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 1

    def test_classifier_batch_mismatch(self, make_box, mean_recognizer):
        classifier = MagicMock()
        classifier.run.return_value = []
        ocr = OCRPipeline(fake_detector([make_box(10, 10)]), mean_recognizer, classifier)

        with pytest.raises(BatchSizeMismatchError):
            ocr.run(tagged_image([]))

    def test_parallel_rectification_keeps_order(self, make_box, mean_recognizer):
        boxes = [make_box(10, 10 + 15 * i, h=10) for i in range(10)]
        img = tagged_image([(b, 10 * (i + 1)) for i, b in enumerate(boxes)])
        ocr = OCRPipeline(fake_detector(list(reversed(boxes))), mean_recognizer, max_workers=4)

        results = ocr.run(img)

        assert [r.text for r in results] == [str(10 * (i + 1)) for i in range(10)]

    def test_call_alias(self, make_box, mean_recognizer):
        box = make_box(10, 10)
        ocr = OCRPipeline(fake_detector([box]), mean_recognizer)
        assert ocr(tagged_image([(box, 40)]))[0].text == "40"

    def test_to_dict(self, make_box, mean_recognizer):
        box = make_box(10, 10)
        ocr = OCRPipeline(fake_detector([box]), mean_recognizer)

        data = ocr.run(tagged_image([(box, 40)]))[0].to_dict()

        assert data == {"text": "40", "score": 0.9, "bbox": box.tolist()}

    def test_to_dict_rounds_float_bbox(self):
        bbox = np.array([[10.6, 10.4], [50.5, 10.49], [50.51, 29.7], [10.2, 29.5]])

        data = RecognitionResult("x", 0.5, bbox).to_dict()

        assert data["bbox"] == [[11, 10], [50, 10], [51, 30], [10, 30]]


class TestDetectAndRecognize:
    """Tests for the partial entry points."""

    def test_detect_returns_reading_order(self, make_box, blank_image):
        ocr = OCRPipeline(fake_detector([make_box(5, 50), make_box(5, 5)]), MagicMock())

        boxes = ocr.detect(blank_image)

        assert [int(b[0][1]) for b in boxes] == [5, 50]

    def test_detect_handles_empty_array(self, blank_image):
        detector = MagicMock()
        detector.run.return_value = np.zeros((0, 4, 2), dtype=np.int32)
        ocr = OCRPipeline(detector, MagicMock())

        assert ocr.detect(blank_image) == []

    def test_recognize_crops(self, mean_recognizer):
        ocr = OCRPipeline(MagicMock(), mean_recognizer)
        crops = [np.full((10, 30, 3), 7, dtype=np.uint8), np.full((10, 30, 3), 9, dtype=np.uint8)]

        assert ocr.recognize(crops) == [("7", 0.9), ("9", 0.9)]

    def test_recognize_nothing(self):
        recognizer = MagicMock()
        ocr = OCRPipeline(MagicMock(), recognizer)

        assert ocr.recognize([]) == []
        recognizer.run.assert_not_called()


class TestLifecycle:
    """Tests for construction and cleanup."""

    def test_close_releases_all_stages(self):
        detector, recognizer, classifier = MagicMock(), MagicMock(), MagicMock()

        with OCRPipeline(detector, recognizer, classifier):
            pass

        detector.close.assert_called_once()
        recognizer.close.assert_called_once()
        classifier.close.assert_called_once()

    def test_close_without_classifier(self):
        detector, recognizer = MagicMock(), MagicMock()
        OCRPipeline(detector, recognizer).close()
        detector.close.assert_called_once()

    @patch("text_ocr.pipeline.registry")
    @patch("text_ocr.text_classifier.TextClassifier")
    @patch("text_ocr.text_recognizer.TextRecognizer")
    @patch("text_ocr.text_detector.TextDetector")
    def test_from_config_without_angle_cls(self, mock_det, mock_rec, mock_cls, mock_registry):
        mock_registry.get.side_effect = lambda key: f"/cache/{key}"

        ocr = OCRPipeline.from_config({"det_model_dir": "models/det", "num_threads": 2})

        assert mock_det.call_args[0][0] == "models/det"
        assert mock_det.call_args[0][2].num_threads == 2
        assert mock_rec.call_args[0][:2] == ("/cache/recognizer", "/cache/dictionary")
        mock_cls.assert_not_called()
        assert ocr.classifier is None
        assert ocr.max_workers == 1

    @patch("text_ocr.pipeline.registry")
    @patch("text_ocr.text_classifier.TextClassifier")
    @patch("text_ocr.text_recognizer.TextRecognizer")
    @patch("text_ocr.text_detector.TextDetector")
    def test_from_config_with_angle_cls(self, mock_det, mock_rec, mock_cls, mock_registry):
        config = OCRConfig(
            det_model_dir="d",
            rec_model_dir="r",
            rec_char_dict_path="dict.txt",
            cls_model_dir="c",
            use_angle_cls=True,
            max_workers=3,
        )

        ocr = OCRPipeline.from_config(config)

        mock_cls.assert_called_once()
        assert mock_cls.call_args[0][0] == "c"
        assert ocr.classifier is mock_cls.return_value
        assert ocr.max_workers == 3
        mock_registry.get.assert_not_called()
