"""Exception types raised by the OCR pipeline."""


class OCRError(Exception):
    """Base class for every error raised by text_ocr."""


class ModelLoadError(OCRError):
    """A model could not be bound to an inference session.

    This is fatal: the owning stage cannot serve any request afterwards.
    """


class ModelNotLoadedError(OCRError):
    """Inference was requested on a model that is not loaded (or was closed)."""


class InvalidRegionError(OCRError):
    """A detected region cannot be rectified (wrong shape, zero area, ...)."""


class BatchSizeMismatchError(OCRError):
    """A batch stage returned a different number of items than it was given."""

    def __init__(self, stage: str, expected: int, actual: int):
        self.stage = stage
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{stage} returned {actual} items for a batch of {expected}"
        )
