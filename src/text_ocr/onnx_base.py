"""ONNX Runtime model wrapper with an explicit load/close lifecycle."""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

import onnxruntime
from onnxruntime import GraphOptimizationLevel, SessionOptions

from .config import EngineConfig
from .errors import ModelLoadError, ModelNotLoadedError

logger = logging.getLogger(__name__)

# File names probed, in order, when a model directory is given
MODEL_FILENAMES = ("model.onnx", "inference.onnx")


def resolve_model_file(model_path: Union[str, Path]) -> Path:
    """Locate the ``.onnx`` file for a model path.

    ``model_path`` may point at the file itself or at a directory holding
    ``model.onnx``, ``inference.onnx`` or exactly one ``*.onnx`` file.

    Raises:
        ModelLoadError: If no model file can be found.
    """
    path = Path(model_path)
    if path.is_file():
        return path
    if not path.is_dir():
        raise ModelLoadError(f"Model not found: {model_path}")

    for name in MODEL_FILENAMES:
        candidate = path / name
        if candidate.is_file():
            return candidate

    candidates = sorted(path.glob("*.onnx"))
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        raise ModelLoadError(f"No .onnx model in directory: {model_path}")
    raise ModelLoadError(
        f"Ambiguous model directory {model_path}: "
        f"{', '.join(c.name for c in candidates)}"
    )


class ONNXModel:
    """A single loaded ONNX model.

    The session keeps internal buffers between calls, so :meth:`run` is
    serialized per instance. Load failures raise :class:`ModelLoadError`
    and leave the instance unusable.

    Usage:
        model = ONNXModel(EngineConfig(num_threads=4)).load("models/det")
        outputs = model.run(model.get_input_feed(batch))
        model.close()
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.model_path: Optional[Path] = None
        self.session: Optional[onnxruntime.InferenceSession] = None
        self.input_names: List[str] = []
        self.output_names: List[str] = []
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self.session is not None

    def load(self, model_path: Union[str, Path]) -> "ONNXModel":
        """Bind the model weights and device resources to a session.

        Args:
            model_path: ``.onnx`` file or directory containing one

        Returns:
            self, to allow ``ONNXModel(cfg).load(path)``
        """
        path = resolve_model_file(model_path)
        providers = self._get_providers()
        try:
            session = onnxruntime.InferenceSession(
                str(path),
                sess_options=self._session_options(),
                providers=providers,
            )
        except Exception as exc:
            raise ModelLoadError(f"Failed to load model {path}: {exc}") from exc

        self.model_path = path
        self.session = session
        self.input_names = [node.name for node in session.get_inputs()]
        self.output_names = [node.name for node in session.get_outputs()]
        logger.info(
            "Loaded %s with providers %s",
            path,
            [p[0] if isinstance(p, tuple) else p for p in providers],
        )
        return self

    def _session_options(self) -> SessionOptions:
        sess_opt = SessionOptions()
        sess_opt.log_severity_level = 3
        sess_opt.enable_mem_pattern = True
        sess_opt.graph_optimization_level = GraphOptimizationLevel.ORT_ENABLE_ALL
        if not self.config.use_gpu and self.config.num_threads > 0:
            sess_opt.intra_op_num_threads = self.config.num_threads
        return sess_opt

    def _get_providers(self) -> List:
        """Get execution providers based on config and availability.

        Priority: TensorRT > CUDA > DNNL > CPU
        """
        config = self.config
        available = onnxruntime.get_available_providers()
        providers = []

        if config.use_gpu:
            if config.use_tensorrt:
                if "TensorrtExecutionProvider" in available:
                    providers.append((
                        "TensorrtExecutionProvider",
                        {"device_id": config.gpu_id},
                    ))
                else:
                    logger.warning("TensorRT requested but not available")
            if "CUDAExecutionProvider" in available:
                providers.append((
                    "CUDAExecutionProvider",
                    {
                        "device_id": config.gpu_id,
                        "gpu_mem_limit": config.gpu_mem * 1024 * 1024,
                        "cudnn_conv_algo_search": "DEFAULT",
                    },
                ))
            else:
                logger.warning("use_gpu is set but CUDA is not available, running on CPU")
        elif config.use_mkldnn:
            if "DnnlExecutionProvider" in available:
                providers.append("DnnlExecutionProvider")
            else:
                logger.warning("use_mkldnn is set but DNNL is not available")

        # CPU (always available as fallback)
        providers.append("CPUExecutionProvider")
        return providers

    def run(self, input_data: Dict) -> List:
        """Run inference on input data.

        Args:
            input_data: Dictionary mapping input names to numpy arrays

        Returns:
            List of output arrays
        """
        with self._lock:
            if self.session is None:
                raise ModelNotLoadedError("run() called before load() or after close()")
            return self.session.run(self.output_names, input_feed=input_data)

    def get_input_feed(self, image_array) -> Dict:
        """Map a batch array (or one array per input) to the model's input names."""
        if not self.input_names:
            raise ModelNotLoadedError("Model has no bound inputs; call load() first")
        if len(self.input_names) == 1:
            return {self.input_names[0]: image_array}
        return {name: image_array[i] for i, name in enumerate(self.input_names)}

    def close(self) -> None:
        with self._lock:
            self.session = None
            self.input_names = []
            self.output_names = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __repr__(self):
        state = self.model_path.name if self.loaded else "unloaded"
        return f"ONNXModel({state})"
