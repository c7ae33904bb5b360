"""Configuration classes for the OCR stages and the inference engine."""

from dataclasses import dataclass, field, fields
from typing import Any, List, Mapping, Optional

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _coerce(value: Any, default: Any) -> Any:
    """Convert a raw option value to the type of the field's default."""
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, list):
        if isinstance(value, str):
            value = value.split(",")
        item_type = type(default[0]) if default else str
        return [item_type(v.strip() if isinstance(v, str) else v) for v in value]
    return value


def _fill(cls, args: Mapping[str, Any]):
    """Build a dataclass from the keys of ``args`` that match its fields.

    Unknown keys are ignored and missing keys keep their defaults.
    """
    defaults = cls()
    kwargs = {}
    for f in fields(cls):
        if f.name in args and args[f.name] is not None:
            kwargs[f.name] = _coerce(args[f.name], getattr(defaults, f.name))
    return cls(**kwargs)


@dataclass
class EngineConfig:
    """Device and threading options for an ONNX Runtime session."""
    use_gpu: bool = False  # Route inference to CUDA instead of the host CPU
    gpu_id: int = 0  # CUDA device index when use_gpu is set
    gpu_mem: int = 1000  # Accelerator memory limit in MB
    num_threads: int = 6  # Intra-op threads when running on CPU
    use_mkldnn: bool = False  # Prefer the oneDNN (DNNL) provider on CPU
    use_tensorrt: bool = False  # Enable TensorRT acceleration

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "EngineConfig":
        return _fill(cls, args)


@dataclass
class DetectorConfig:
    """Configuration for text detection stage."""
    det_limit_side_len: int = 960  # Side length limit for input images
    det_limit_type: str = "max"  # 'max' or 'min'
    det_db_thresh: float = 0.3  # Binarization threshold
    det_db_box_thresh: float = 0.6  # Box confidence threshold
    det_db_unclip_ratio: float = 1.5  # Text region expansion ratio
    det_max_candidates: int = 1000  # Contours considered per image
    use_dilation: bool = False  # Apply dilation to binary mask

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "DetectorConfig":
        return _fill(cls, args)


@dataclass
class ClassifierConfig:
    """Configuration for text orientation classification stage."""
    cls_image_shape: List[int] = field(default_factory=lambda: [3, 48, 192])  # [C, H, W]
    cls_batch_num: int = 6
    cls_thresh: float = 0.9  # Confidence needed before rotating
    label_list: List[str] = field(default_factory=lambda: ["0", "180"])

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "ClassifierConfig":
        return _fill(cls, args)


@dataclass
class RecognizerConfig:
    """Configuration for text recognition stage."""
    rec_image_shape: List[int] = field(default_factory=lambda: [3, 48, 320])  # [C, H, W]
    rec_batch_num: int = 6
    use_space_char: bool = True  # Include space character in vocabulary

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "RecognizerConfig":
        return _fill(cls, args)


@dataclass
class OCRConfig:
    """Everything needed to assemble an :class:`~text_ocr.pipeline.OCRPipeline`.

    Model paths left as ``None`` are resolved through the model registry.
    """
    det_model_dir: Optional[str] = None
    cls_model_dir: Optional[str] = None
    rec_model_dir: Optional[str] = None
    rec_char_dict_path: Optional[str] = None
    use_angle_cls: bool = False
    max_workers: int = 1  # Threads used to rectify regions
    engine: EngineConfig = field(default_factory=EngineConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)

    @classmethod
    def from_args(cls, args: Optional[Mapping[str, Any]] = None) -> "OCRConfig":
        """Build a config from a flat option mapping.

        Example:
            OCRConfig.from_args({"use_gpu": True, "gpu_id": 1, "rec_model_dir": "models/rec"})
        """
        args = dict(args or {})
        config = cls(
            engine=EngineConfig.from_args(args),
            detector=DetectorConfig.from_args(args),
            classifier=ClassifierConfig.from_args(args),
            recognizer=RecognizerConfig.from_args(args),
        )
        for name in (
            "det_model_dir",
            "cls_model_dir",
            "rec_model_dir",
            "rec_char_dict_path",
        ):
            if args.get(name):
                setattr(config, name, str(args[name]))
        if "use_angle_cls" in args:
            config.use_angle_cls = _coerce(args["use_angle_cls"], False)
        if args.get("max_workers") is not None:
            config.max_workers = max(1, int(args["max_workers"]))
        return config
